"""Parallel scan orchestration over candidate files."""

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Union

from .models import ScanResult
from .walker import DirectoryWalker
from ..core.config import ConcurrencyConfig, ScanSettings
from ..parsing.models import (
    CandidateFile,
    FailureReason,
    LogReport,
    ScanFailure,
)
from ..parsing.services import analyze_file

logger = logging.getLogger(__name__)

ProgressSink = Callable[[int, int], None]


class CancellationToken:
    """Cooperative cancellation flag shared between the caller and a scan."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ResultCollector:
    """Single ownership point for per-file results.

    Workers call :meth:`add` concurrently; the lock is held only while a
    result is appended. The progress sink is called after the lock is
    released, from the worker thread that delivered the result.
    """

    def __init__(self, total: int, progress: Optional[ProgressSink] = None):
        self.total = total
        self._progress = progress
        self._lock = threading.Lock()
        self._reports: List[LogReport] = []
        self._failures: List[ScanFailure] = []
        self._seen = set()

    def add(self, result: Union[LogReport, ScanFailure]) -> None:
        with self._lock:
            if result.path in self._seen:
                logger.warning("Ignoring duplicate result for %s", result.path)
                return
            self._seen.add(result.path)
            if isinstance(result, LogReport):
                self._reports.append(result)
            else:
                self._failures.append(result)
            completed = len(self._seen)

        if self._progress is not None:
            self._progress(completed, self.total)

    @property
    def completed(self) -> int:
        with self._lock:
            return len(self._seen)

    def build(self, root: Optional[Path] = None, cancelled: bool = False) -> ScanResult:
        """Freeze collected results, best logs first."""
        with self._lock:
            reports = sorted(self._reports, key=_report_sort_key)
            failures = sorted(self._failures, key=lambda f: str(f.path))
        return ScanResult(
            root=root,
            reports=tuple(reports),
            failures=tuple(failures),
            total=self.total,
            cancelled=cancelled,
        )


def _report_sort_key(report: LogReport):
    # Valid logs by DR descending then path; invalid logs after them
    if report.is_valid:
        return (0, -report.overall_dr, str(report.path))
    return (1, 0, str(report.path))


class ScanOrchestrator:
    """Fans the per-file pipeline out over a bounded thread pool."""

    def __init__(self, settings: Optional[ScanSettings] = None):
        """Initialize with optional scan settings."""
        self.settings = settings or ScanSettings()

    def scan(
        self,
        candidates: Iterable[CandidateFile],
        progress: Optional[ProgressSink] = None,
        cancel: Optional[CancellationToken] = None,
        root: Optional[Path] = None,
        prior_failures: Sequence[ScanFailure] = (),
    ) -> ScanResult:
        """Analyze every candidate and aggregate the results.

        At most ``max_workers`` files are in flight at once. The cancel flag is
        checked before each dispatch and polled while every worker is busy, so
        after cancellation only the files already in flight complete.
        """
        candidates = list(candidates)
        cancel = cancel or CancellationToken()
        collector = ResultCollector(len(candidates) + len(prior_failures), progress)

        for failure in prior_failures:
            collector.add(failure)

        workers = min(self.settings.max_workers, max(1, len(candidates)))
        logger.info(
            "Scanning %d file(s) with %d worker(s)", len(candidates), workers
        )

        futures = []
        pending = set()
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="dr-scan"
        ) as executor:
            for candidate in candidates:
                while len(pending) >= workers and not cancel.cancelled:
                    _, pending = wait(
                        pending,
                        timeout=ConcurrencyConfig.CANCEL_POLL_SECONDS,
                        return_when=FIRST_COMPLETED,
                    )
                if cancel.cancelled:
                    in_flight = sum(1 for f in pending if not f.done())
                    logger.info(
                        "Dispatch stopped; waiting for %d file(s) in flight",
                        in_flight,
                    )
                    break
                future = executor.submit(self._process, candidate, collector)
                futures.append(future)
                pending.add(future)

        # Surfaces collector or progress sink errors; per-file errors are data
        for future in futures:
            future.result()

        cancelled = cancel.cancelled and collector.completed < collector.total
        if cancelled:
            logger.warning(
                "Scan cancelled after %d of %d file(s)",
                collector.completed,
                collector.total,
            )
        return collector.build(root=root, cancelled=cancelled)

    def _process(self, candidate: CandidateFile, collector: ResultCollector) -> None:
        try:
            result = analyze_file(candidate, self.settings)
        except Exception as e:
            logger.exception("Unexpected error analyzing %s", candidate.path)
            result = ScanFailure(candidate, FailureReason.INTERNAL_ERROR, str(e))
        collector.add(result)


def scan_directory(
    root: Union[str, Path],
    settings: Optional[ScanSettings] = None,
    progress: Optional[ProgressSink] = None,
    cancel: Optional[CancellationToken] = None,
) -> ScanResult:
    """Walk a directory tree and scan every candidate file in it.

    Raises:
        ScanRootError: when root is missing or not a directory.
    """
    settings = settings or ScanSettings()
    cancel = cancel or CancellationToken()
    walker = DirectoryWalker(root, settings.extensions, settings.follow_symlinks)
    candidates, failures = walker.collect(cancel)
    walk_cut = cancel.cancelled
    result = ScanOrchestrator(settings).scan(
        candidates,
        progress=progress,
        cancel=cancel,
        root=walker.root,
        prior_failures=failures,
    )
    if walk_cut and not result.cancelled:
        result = replace(result, cancelled=True)
    return result
