"""Cleanup planning and execution based on scan results."""

import logging
import os
import shutil
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional

from .models import (
    ActionKind,
    ActionMode,
    ActionOutcome,
    ActionPlan,
    CleanupPolicy,
    DirectoryPlan,
    ExecutionReport,
    PlannedAction,
)
from ..core.exceptions import ConfigurationError, ConfirmationRequiredError
from ..parsing.models import FailureReason, LogReport
from ..scanning.models import ScanResult

logger = logging.getLogger(__name__)


def group_by_directory(result: ScanResult) -> Dict[Path, List[LogReport]]:
    """Group every recognized log of a scan by its containing directory."""
    groups: Dict[Path, List[LogReport]] = defaultdict(list)
    for report in result.reports:
        groups[report.source.directory].append(report)
    return {
        directory: sorted(reports, key=lambda r: str(r.path))
        for directory, reports in sorted(groups.items(), key=lambda i: str(i[0]))
    }


def _best_report(reports: List[LogReport]) -> LogReport:
    return min(
        (r for r in reports if r.is_valid),
        key=lambda r: (-r.overall_dr, str(r.path)),
    )


class ActionPlanner:
    """Computes an ActionPlan without touching the filesystem."""

    def __init__(
        self,
        policy: CleanupPolicy,
        mode: ActionMode = ActionMode.DELETE,
        destination: Optional[Path] = None,
        min_dr: Optional[int] = None,
    ):
        """Validate the policy parameters."""
        if mode is ActionMode.MOVE and destination is None:
            raise ConfigurationError(
                "Move mode requires a destination directory", parameter="destination"
            )
        if policy is CleanupPolicy.REMOVE_LOW_DR_DIRECTORIES and min_dr is None:
            raise ConfigurationError(
                "Removing low DR directories requires a minimum DR",
                parameter="min_dr",
            )
        self.policy = policy
        self.mode = mode
        self.destination = Path(destination) if destination is not None else None
        self.min_dr = min_dr

    def plan(self, result: ScanResult) -> ActionPlan:
        """Build the per-directory plan for a completed scan."""
        groups = group_by_directory(result)
        directories = []

        for directory, reports in groups.items():
            if not any(r.is_valid for r in reports):
                logger.info("Skipping %s: no valid DR log to anchor a decision", directory)
                directories.append(
                    DirectoryPlan(
                        directory=directory,
                        skip_reason=FailureReason.AMBIGUOUS_DIRECTORY,
                        note="No valid DR log in directory",
                    )
                )
                continue

            best = _best_report(reports)
            if self.policy is CleanupPolicy.REMOVE_LOW_DR_DIRECTORIES:
                directories.append(
                    self._plan_directory_removal(directory, best, groups, result.root)
                )
                continue

            if self.policy is CleanupPolicy.DELETE_INVALID_LOGS:
                targets = [r for r in reports if not r.is_valid]
            else:
                targets = [r for r in reports if r.path != best.path]

            actions = tuple(
                self._file_action(report, result.root) for report in targets
            )
            directories.append(
                DirectoryPlan(
                    directory=directory,
                    kept=best.path,
                    best_dr=best.overall_dr,
                    actions=actions,
                )
            )

        plan = ActionPlan(
            policy=self.policy,
            mode=self.mode,
            directories=tuple(directories),
            root=result.root,
            destination=self.destination,
        )
        logger.info(
            "Planned %d action(s) over %d directory(ies), %d skipped",
            len(plan.actions),
            len(plan.directories),
            len(plan.skipped_directories),
        )
        return plan

    def _plan_directory_removal(
        self,
        directory: Path,
        best: LogReport,
        groups: Dict[Path, List[LogReport]],
        root: Optional[Path],
    ) -> DirectoryPlan:
        if best.overall_dr >= self.min_dr:
            return DirectoryPlan(directory=directory, kept=best.path, best_dr=best.overall_dr)

        if root is not None and directory == root:
            return DirectoryPlan(
                directory=directory,
                best_dr=best.overall_dr,
                note="Scan root is never removed",
            )

        nested = [d for d in groups if d != directory and directory in d.parents]
        if nested:
            return DirectoryPlan(
                directory=directory,
                best_dr=best.overall_dr,
                note=f"Holds {len(nested)} other log directory(ies), not removed",
            )

        kind = (
            ActionKind.MOVE_DIRECTORY
            if self.mode is ActionMode.MOVE
            else ActionKind.DELETE_DIRECTORY
        )
        action = PlannedAction(
            kind=kind,
            target=directory,
            reason=f"Best log is DR{best.overall_dr}, below DR{self.min_dr}",
            destination=self._destination_for(directory, root),
        )
        return DirectoryPlan(
            directory=directory, best_dr=best.overall_dr, actions=(action,)
        )

    def _file_action(self, report: LogReport, root: Optional[Path]) -> PlannedAction:
        if report.is_valid:
            reason = f"Superseded {report.dr_label} log"
        else:
            reason = f"Invalid log ({report.reason.value})"
        kind = ActionKind.MOVE_FILE if self.mode is ActionMode.MOVE else ActionKind.DELETE_FILE
        return PlannedAction(
            kind=kind,
            target=report.path,
            reason=reason,
            destination=self._destination_for(report.path, root),
        )

    def _destination_for(self, path: Path, root: Optional[Path]) -> Optional[Path]:
        """Mirror a path under the move destination, relative to the scan root."""
        if self.mode is not ActionMode.MOVE:
            return None
        if root is not None and root in path.parents:
            return self.destination / path.relative_to(root)
        return self.destination / path.name


def _free_path(path: Path) -> Path:
    """First non-existing path derived from path by a numeric suffix."""
    if not path.exists():
        return path
    counter = 1
    while True:
        candidate = path.with_name(f"{path.stem}.{counter}{path.suffix}")
        if not candidate.exists():
            return candidate
        counter += 1


class ActionExecutor:
    """Carries out an ActionPlan, one action at a time, in plan order.

    Nothing is undone: a failed action is recorded and the remaining
    actions still run.
    """

    def __init__(self, dry_run: bool = False, prune_empty_dirs: bool = False):
        self.dry_run = dry_run
        self.prune_empty_dirs = prune_empty_dirs

    def execute(self, plan: ActionPlan, confirmed: bool = False) -> ExecutionReport:
        """Execute a plan; real runs require explicit confirmation.

        Raises:
            ConfirmationRequiredError: when a non-dry run is not confirmed.
        """
        if not self.dry_run and not confirmed and not plan.is_empty:
            raise ConfirmationRequiredError(
                "Refusing to modify the filesystem without confirmation",
                details=f"{len(plan.actions)} pending action(s)",
            )

        outcomes = []
        pruned = []
        for directory_plan in plan.directories:
            if directory_plan.skipped:
                continue
            for action in directory_plan.actions:
                outcome = self._run(action, directory_plan.kept)
                outcomes.append(outcome)
                if outcome.success and self.prune_empty_dirs and not self.dry_run:
                    pruned.extend(self._prune(action.target.parent, plan.root))

        report = ExecutionReport(
            outcomes=tuple(outcomes), dry_run=self.dry_run, pruned=tuple(pruned)
        )
        logger.info(
            "%s: %d succeeded, %d failed, %d directory(ies) pruned",
            "Dry run" if self.dry_run else "Cleanup",
            len(report.succeeded),
            len(report.failed),
            len(report.pruned),
        )
        return report

    def _run(self, action: PlannedAction, kept: Optional[Path]) -> ActionOutcome:
        if kept is not None and (action.target == kept or action.target in kept.parents):
            logger.error("Refusing to %s kept log %s", action.kind.verb.lower(), kept)
            return ActionOutcome(
                action,
                success=False,
                reason=FailureReason.ACTION_FAILED,
                message="Target is the kept log",
                dry_run=self.dry_run,
            )

        if self.dry_run:
            return ActionOutcome(
                action, success=True, message="Dry run, not executed", dry_run=True
            )

        try:
            message = self._apply(action)
        except OSError as e:
            logger.error("Failed to %s %s: %s", action.kind.verb.lower(), action.target, e)
            return ActionOutcome(
                action,
                success=False,
                reason=FailureReason.ACTION_FAILED,
                message=str(e),
            )

        logger.info(message)
        return ActionOutcome(action, success=True, message=message)

    def _apply(self, action: PlannedAction) -> str:
        target = action.target
        if action.kind is ActionKind.DELETE_FILE:
            os.remove(target)
            return f"Deleted {target}"
        if action.kind is ActionKind.DELETE_DIRECTORY:
            shutil.rmtree(target)
            return f"Deleted directory {target}"

        if not target.exists():
            raise FileNotFoundError(f"No such file or directory: '{target}'")
        destination = _free_path(action.destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(target), str(destination))
        return f"Moved {target} to {destination}"

    def _prune(self, directory: Path, root: Optional[Path]) -> List[Path]:
        """Remove directory and its parents while they are empty, stopping at root."""
        removed = []
        if root is None:
            return removed
        while directory != root and root in directory.parents:
            try:
                if any(directory.iterdir()):
                    break
                directory.rmdir()
            except OSError as e:
                logger.debug("Stopped pruning at %s: %s", directory, e)
                break
            logger.info("Removed empty directory %s", directory)
            removed.append(directory)
            directory = directory.parent
        return removed
