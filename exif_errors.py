class DateTakenError(Exception):
    """Base error for set_date_taken."""


class UsageError(DateTakenError):
    pass


class TargetNotFoundError(DateTakenError):
    pass


class InvalidDateError(DateTakenError):
    pass


class TimestampUnavailableError(DateTakenError):
    """The filesystem does not expose the requested timestamp."""


class PathResolutionError(DateTakenError):
    pass


class ExternalServiceError(DateTakenError):
    """The imaging service failed to launch, exited non-zero or is missing."""


class UnsupportedPlatformError(ExternalServiceError):
    pass


class ReplaceFailedError(DateTakenError):
    pass
