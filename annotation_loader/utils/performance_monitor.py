#!/usr/bin/env python3

"""
Performance monitoring for the annotation collection loader.

Each processed file, and the close step, runs as one phase. A phase records
its wall time, the number of records handled and the resident memory
high-water mark; the memory ceiling is enforced as each phase ends.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

import psutil

from ..core.exceptions import ResourceLimitError

MB = 1024 * 1024


@dataclass
class PhaseMetrics:
    """Timing, record count and memory high-water mark of one loading phase."""
    name: str
    started: float = field(default_factory=time.time)
    finished: Optional[float] = None
    records: int = 0
    peak_rss_mb: float = 0.0

    @property
    def duration(self) -> float:
        end = self.finished if self.finished is not None else time.time()
        return end - self.started

    @property
    def records_per_second(self) -> float:
        duration = self.duration
        return self.records / duration if duration > 0 else 0.0


class PerformanceMonitor:
    """Per-phase timing and memory monitoring with an optional memory ceiling."""

    def __init__(self, memory_limit_mb: int = 4096, enabled: bool = True):
        self.memory_limit_mb = memory_limit_mb
        self.enabled = enabled
        self.created = time.time()
        self.phases: List[PhaseMetrics] = []
        self.active: Optional[PhaseMetrics] = None
        self.process = psutil.Process()

    def rss_mb(self) -> float:
        """Resident memory of this process in MB; also updates the active phase peak."""
        try:
            usage = self.process.memory_info().rss / MB
        except psutil.Error as e:
            logging.warning(f"Could not read process memory: {e}")
            return 0.0
        if self.active is not None:
            self.active.peak_rss_mb = max(self.active.peak_rss_mb, usage)
        return usage

    def enforce_limit(self) -> None:
        """Raise ResourceLimitError when resident memory is over the ceiling."""
        if not self.enabled:
            return
        usage = self.rss_mb()
        if usage > self.memory_limit_mb:
            logging.error(f"Memory usage {usage:.1f}MB is over the {self.memory_limit_mb}MB limit")
            raise ResourceLimitError("Memory usage exceeded limit", usage, self.memory_limit_mb)

    @contextmanager
    def phase(self, name: str) -> Iterator[PhaseMetrics]:
        """Run a block as a named phase; the caller sets `records` on the yielded metrics."""
        metrics = PhaseMetrics(name)
        self.phases.append(metrics)
        self.active = metrics
        self.rss_mb()
        logging.debug(f"Started phase {name}")
        try:
            yield metrics
        finally:
            self.rss_mb()
            metrics.finished = time.time()
            self.active = None
            logging.info(f"{name}: {metrics.records} records in {metrics.duration:.2f}s "
                         f"(peak memory {metrics.peak_rss_mb:.1f}MB)")
        self.enforce_limit()

    def peak_rss_mb(self) -> float:
        return max((p.peak_rss_mb for p in self.phases), default=0.0)

    def summary(self) -> Dict[str, Any]:
        return {
            'elapsed': time.time() - self.created,
            'peak_rss_mb': self.peak_rss_mb(),
            'memory_limit_mb': self.memory_limit_mb,
            'phases': {
                p.name: {
                    'duration': p.duration,
                    'records': p.records,
                    'records_per_second': p.records_per_second,
                    'peak_rss_mb': p.peak_rss_mb,
                }
                for p in self.phases
            },
        }

    def log_report(self) -> None:
        """Log one line per phase plus totals."""
        summary = self.summary()
        logging.info(f"Load took {summary['elapsed']:.2f}s, peak memory "
                     f"{summary['peak_rss_mb']:.1f}MB of {summary['memory_limit_mb']}MB")
        for name, phase in summary['phases'].items():
            logging.info(f"  {name}: {phase['records']} records, {phase['duration']:.2f}s, "
                         f"{phase['records_per_second']:.1f} records/s")
