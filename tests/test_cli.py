"""Tests for the command-line entry point."""

import io
import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from tests.fakes import FakeClock, FakeLoader
from trae_monitor.__main__ import main, parse_args
from trae_monitor.bridge import MonitorBridge
from trae_monitor.config import ConfigStore, WindowStateStore
from trae_monitor.controller import MonitorController
from trae_monitor.models import ActiveDayCell, ActiveDaysData, UsageData, UsageItem


class TestCli(unittest.TestCase):
    """Test cases for --once and --login."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir)

    def _bridge(self, loader):
        return MonitorBridge(
            MonitorController(loader, clock=FakeClock()),
            ConfigStore(Path(self.temp_dir) / "app-config.json"),
            WindowStateStore(Path(self.temp_dir) / "window-state.json"),
        )

    def test_parse_args(self):
        args = parse_args(["--once", "-v"])
        self.assertTrue(args.once)
        self.assertTrue(args.verbose)
        self.assertFalse(args.login)

    def test_once_prints_json(self):
        loader = FakeLoader(
            usage=[UsageData(plan_type="Pro", items=[UsageItem(id="a", title="Pro plan", current=1, total=10)])],
            active=[ActiveDaysData(cells=[ActiveDayCell("2024-03-05", 2)])],
        )
        with patch("trae_monitor.__main__.build_bridge", return_value=self._bridge(loader)), \
                patch("sys.stdout", new_callable=io.StringIO) as out:
            code = main(["--once"])

        self.assertEqual(code, 0)
        result = json.loads(out.getvalue())
        self.assertEqual(result["usage"]["planType"], "Pro")
        self.assertEqual(result["activeDays"]["cells"], [{"date": "2024-03-05", "level": 2}])

    def test_once_without_usage_fails(self):
        with patch("trae_monitor.__main__.build_bridge", return_value=self._bridge(FakeLoader())), \
                patch("sys.stdout", new_callable=io.StringIO) as out:
            code = main(["--once"])

        self.assertEqual(code, 1)
        self.assertEqual(json.loads(out.getvalue()), {"usage": None, "activeDays": None})

    def test_login_without_browser(self):
        with patch("trae_monitor.__main__.build_bridge", return_value=self._bridge(FakeLoader())), \
                patch("sys.stdout", new_callable=io.StringIO) as out:
            code = main(["--login"])

        self.assertEqual(code, 1)
        self.assertIn("no usage found", out.getvalue())


if __name__ == "__main__":
    unittest.main()
