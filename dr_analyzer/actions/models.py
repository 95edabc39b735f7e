"""Filesystem action domain models."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from ..parsing.models import FailureReason


class CleanupPolicy(Enum):
    """Which files a cleanup run removes from each directory."""

    DELETE_INVALID_LOGS = "delete-invalid"
    KEEP_ONLY_HIGHEST_DR = "keep-highest"
    REMOVE_LOW_DR_DIRECTORIES = "remove-low-dr"

    @property
    def description(self) -> str:
        """Human-readable summary of the policy."""
        if self is CleanupPolicy.DELETE_INVALID_LOGS:
            return "Remove recognized logs that carry no readable tracks"
        elif self is CleanupPolicy.KEEP_ONLY_HIGHEST_DR:
            return "Keep only the highest DR log in each directory"
        else:
            return "Remove whole directories whose best DR is below the threshold"


class ActionMode(Enum):
    """Supported destructive operations."""

    DELETE = "delete"
    MOVE = "move"


class ActionKind(Enum):
    """Concrete filesystem operation for one target."""

    DELETE_FILE = "delete-file"
    MOVE_FILE = "move-file"
    DELETE_DIRECTORY = "delete-directory"
    MOVE_DIRECTORY = "move-directory"

    @property
    def verb(self) -> str:
        return "Move" if self in (ActionKind.MOVE_FILE, ActionKind.MOVE_DIRECTORY) else "Delete"


@dataclass(frozen=True)
class PlannedAction:
    """One filesystem operation proposed by a plan."""

    kind: ActionKind
    target: Path
    reason: str
    destination: Optional[Path] = None


@dataclass(frozen=True)
class DirectoryPlan:
    """Planned actions for one directory of logs."""

    directory: Path
    kept: Optional[Path] = None
    best_dr: Optional[int] = None
    actions: Tuple[PlannedAction, ...] = ()
    skip_reason: Optional[FailureReason] = None
    note: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.skip_reason is not None


@dataclass(frozen=True)
class ActionPlan:
    """Per-directory actions computed from a scan result and a policy."""

    policy: CleanupPolicy
    mode: ActionMode
    directories: Tuple[DirectoryPlan, ...] = ()
    root: Optional[Path] = None
    destination: Optional[Path] = None

    @property
    def actions(self) -> Tuple[PlannedAction, ...]:
        return tuple(
            action for directory in self.directories for action in directory.actions
        )

    @property
    def skipped_directories(self) -> Tuple[DirectoryPlan, ...]:
        return tuple(d for d in self.directories if d.skipped)

    @property
    def is_empty(self) -> bool:
        return not self.actions


@dataclass(frozen=True)
class ActionOutcome:
    """Result of executing (or simulating) one planned action."""

    action: PlannedAction
    success: bool
    reason: Optional[FailureReason] = None
    message: Optional[str] = None
    dry_run: bool = False


@dataclass(frozen=True)
class ExecutionReport:
    """Per-action outcomes of one plan execution."""

    outcomes: Tuple[ActionOutcome, ...] = ()
    dry_run: bool = False
    pruned: Tuple[Path, ...] = ()

    @property
    def succeeded(self) -> Tuple[ActionOutcome, ...]:
        return tuple(o for o in self.outcomes if o.success)

    @property
    def failed(self) -> Tuple[ActionOutcome, ...]:
        return tuple(o for o in self.outcomes if not o.success)
