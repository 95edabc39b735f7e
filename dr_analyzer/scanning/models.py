"""Scanning domain models."""

from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

from ..classification.models import HealthCategory
from ..classification.services import category_counts
from ..parsing.models import FailureReason, LogReport, ScanFailure


@dataclass(frozen=True)
class ScanResult:
    """Aggregated outcome of one scan invocation.

    ``reports`` holds every recognized log, valid or not; ``failures`` holds
    the files that produced no report at all.
    """

    root: Optional[Path] = None
    reports: Tuple[LogReport, ...] = ()
    failures: Tuple[ScanFailure, ...] = ()
    total: int = 0
    cancelled: bool = False

    @property
    def valid_reports(self) -> Tuple[LogReport, ...]:
        return tuple(r for r in self.reports if r.is_valid)

    @property
    def invalid_reports(self) -> Tuple[LogReport, ...]:
        return tuple(r for r in self.reports if not r.is_valid)

    @property
    def completed(self) -> int:
        """Number of files that reached the collector."""
        return len(self.reports) + len(self.failures)

    @property
    def category_counts(self) -> Dict[HealthCategory, int]:
        """Valid report count per health category, worst first."""
        return category_counts(r.overall_dr for r in self.valid_reports)

    @property
    def failure_counts(self) -> Dict[FailureReason, int]:
        """Count of failures and invalid reports per reason."""
        counter = Counter(f.reason for f in self.failures)
        counter.update(r.reason for r in self.invalid_reports)
        return dict(counter)
