#!/usr/bin/env python3
import io
import os
import shutil
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from exif_errors import TargetNotFoundError  # noqa: E402
from exif_rewriter import read_date_taken  # noqa: E402
from jpeg_fixtures import PiexifWriter, make_jpeg  # noqa: E402
from set_date_taken import main, update_date_taken  # noqa: E402


class TestSetDateTakenCli(unittest.TestCase):
    def setUp(self):
        self.tmp = Path(tempfile.mkdtemp())
        self.writer = PiexifWriter()

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def run_main(self, argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            with patch('set_date_taken.detect_writer', return_value=self.writer):
                code = main(argv)
        return code, out.getvalue(), err.getvalue()

    def test_wrong_argument_count(self):
        for argv in [[], ['photo.jpg'], ['photo.jpg', 'filename', 'extra']]:
            code, out, err = self.run_main(argv)
            self.assertEqual(code, 1)
            self.assertIn('Usage:', err)
            self.assertIn("'filename' to extract from filename", err)
            self.assertEqual(out, '')
        self.assertEqual(self.writer.calls, [])

    def test_help_flags_are_a_wrong_argument_count(self):
        for argv in [['--help'], ['-h'], ['photo.jpg', 'filename', '-v', 'extra']]:
            code, out, err = self.run_main(argv)
            self.assertEqual(code, 1)
            self.assertIn('Usage:', err)
            self.assertEqual(out, '')

    def test_image_path_starting_with_dash(self):
        make_jpeg(self.tmp / '-202403.jpg')
        cwd = os.getcwd()
        os.chdir(self.tmp)
        try:
            code, out, err = self.run_main(['-202403.jpg', 'filename'])
        finally:
            os.chdir(cwd)
        self.assertEqual(code, 0, err)
        self.assertEqual(read_date_taken(self.tmp / '-202403.jpg'), '2024:03:01 00:00:00')

    def test_literal_date(self):
        photo = make_jpeg(self.tmp / 'photo.jpg')
        code, out, err = self.run_main([str(photo), '2024-01-15 14:30:00'])
        self.assertEqual(code, 0, err)
        self.assertIn(f'Successfully updated EXIF date for: {photo}', out)
        self.assertEqual(read_date_taken(photo), '2024:01:15 14:30:00')

    def test_filename_date(self):
        photo = make_jpeg(self.tmp / '202403_vacation.jpg')
        code, out, err = self.run_main([str(photo), 'filename'])
        self.assertEqual(code, 0, err)
        self.assertEqual(read_date_taken(photo), '2024:03:01 00:00:00')
        self.assertEqual(self.writer.calls[0][2], '2024:03:01 00:00:00')

    def test_missing_file(self):
        code, out, err = self.run_main([str(self.tmp / 'missing.jpg'), 'modified'])
        self.assertEqual(code, 1)
        self.assertIn('File not found', err)
        self.assertEqual(out, '')

    def test_invalid_literal(self):
        photo = make_jpeg(self.tmp / 'photo.jpg')
        original = photo.read_bytes()
        code, out, err = self.run_main([str(photo), '2024-13-01 00:00:00'])
        self.assertEqual(code, 1)
        self.assertIn('Invalid datetime format', err)
        self.assertEqual(photo.read_bytes(), original)

    def test_filename_without_prefix(self):
        photo = make_jpeg(self.tmp / 'photo.jpg')
        code, out, err = self.run_main([str(photo), 'filename'])
        self.assertEqual(code, 1)
        self.assertIn('does not start with YYYYMM format', err)

    def test_unsupported_platform(self):
        photo = make_jpeg(self.tmp / 'photo.jpg')
        original = photo.read_bytes()
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            with patch('exif_rewriter.sys.platform', 'linux'):
                code = main([str(photo), '2024-01-15 14:30:00'])
        self.assertEqual(code, 1)
        self.assertIn('install exiftool', err.getvalue())
        self.assertEqual(photo.read_bytes(), original)

    def test_verbose_flag(self):
        photo = make_jpeg(self.tmp / 'photo.jpg')
        for flag in ['--verbose', '-v']:
            code, out, err = self.run_main([str(photo), '2024-01-15 14:30:00', flag])
            self.assertEqual(code, 0, err)


class TestUpdateDateTaken(unittest.TestCase):
    def setUp(self):
        self.tmp = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    @patch('set_date_taken.resolve')
    def test_missing_file_is_reported_before_resolving(self, mock_resolve):
        for source in ['modified', 'created', 'filename', '2024-01-15 14:30:00']:
            with self.assertRaises(TargetNotFoundError):
                update_date_taken(str(self.tmp / 'missing.jpg'), source, writer=PiexifWriter())
        self.assertFalse(mock_resolve.called)

    def test_returns_written_timestamp(self):
        photo = make_jpeg(self.tmp / 'photo.jpg')
        result = update_date_taken(str(photo), '2022-07-08 09:10:11', writer=PiexifWriter())
        self.assertEqual(result, datetime(2022, 7, 8, 9, 10, 11))

    def test_warns_on_filename_mismatch(self):
        photo = make_jpeg(self.tmp / '202403_vacation.jpg')
        with self.assertLogs('set_date_taken', level='WARNING') as logs:
            update_date_taken(str(photo), '2020-01-01 00:00:00', writer=PiexifWriter())
        self.assertIn('suggests 202403', '\n'.join(logs.output))


if __name__ == '__main__':
    unittest.main()
