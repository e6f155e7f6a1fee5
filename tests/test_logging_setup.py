"""Tests for the root logger helper."""

import logging
import tempfile
import unittest
from pathlib import Path

from py2sharksem import setup_logging


class TestSetupLogging(unittest.TestCase):

    def setUp(self):
        root = logging.getLogger()
        saved = (root.level, list(root.handlers))

        def restore():
            for handler in root.handlers:
                if handler not in saved[1]:
                    handler.close()
            root.handlers = saved[1]
            root.setLevel(saved[0])

        self.addCleanup(restore)

    def test_level_by_name(self):
        setup_logging("DEBUG")
        self.assertEqual(logging.getLogger().level, logging.DEBUG)

    def test_invalid_level(self):
        with self.assertRaises(ValueError):
            setup_logging("LOUD")

    def test_log_file(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = Path(temp_dir) / 'logs' / 'sem.log'
            setup_logging(logging.INFO, log_file=log_file)
            logging.getLogger('py2sharksem.test').info("stage idle")
            for handler in logging.getLogger().handlers:
                handler.flush()
            self.assertIn("py2sharksem.test - INFO - stage idle", log_file.read_text())
            for handler in logging.getLogger().handlers:
                handler.close()


if __name__ == '__main__':
    unittest.main()
