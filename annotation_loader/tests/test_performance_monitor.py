#!/usr/bin/env python3

"""
Unit tests for per-phase performance monitoring.
"""

import os
import sys
import unittest
from unittest.mock import Mock, patch

# Add the parent directory to the path to import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from annotation_loader.core.exceptions import ResourceLimitError
from annotation_loader.utils.performance_monitor import PerformanceMonitor


def fake_process(megabytes):
    return Mock(memory_info=Mock(return_value=Mock(rss=megabytes * 1024 * 1024)))


class TestPerformanceMonitor(unittest.TestCase):

    def test_phase_records(self):
        monitor = PerformanceMonitor(memory_limit_mb=4096)
        with patch.object(monitor, "process", fake_process(100)):
            with monitor.phase("gene_models:a.gff3") as metrics:
                metrics.records = 42

        phase = monitor.summary()['phases']["gene_models:a.gff3"]
        self.assertEqual(phase['records'], 42)
        self.assertAlmostEqual(phase['peak_rss_mb'], 100.0)
        self.assertAlmostEqual(monitor.peak_rss_mb(), 100.0)
        self.assertIsNone(monitor.active)
        self.assertIsNotNone(metrics.finished)

    def test_memory_limit_exceeded(self):
        monitor = PerformanceMonitor(memory_limit_mb=200)
        with patch.object(monitor, "process", fake_process(300)):
            with self.assertRaises(ResourceLimitError) as ctx:
                with monitor.phase("protein:p.faa"):
                    pass
        self.assertAlmostEqual(ctx.exception.current_usage, 300.0)
        self.assertEqual(ctx.exception.limit, 200)

    def test_disabled_monitor_never_raises(self):
        monitor = PerformanceMonitor(memory_limit_mb=200, enabled=False)
        with patch.object(monitor, "process", fake_process(300)):
            with monitor.phase("close"):
                pass
        self.assertEqual(len(monitor.phases), 1)


if __name__ == '__main__':
    unittest.main()
