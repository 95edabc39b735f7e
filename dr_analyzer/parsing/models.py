"""Log parsing domain models."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from ..classification.models import HealthCategory
from ..classification.services import classify


class LanguageVariant(Enum):
    """Localized text layout a DR log follows."""

    ENGLISH = "en"
    RUSSIAN = "ru"
    UNKNOWN = "unknown"


class FailureReason(str, Enum):
    """Why a file or action did not produce a usable result."""

    NOT_A_RECOGNIZED_LOG = "NotARecognizedLog"
    ENCODING_ERROR = "EncodingError"
    NO_TRACKS_FOUND = "NoTracksFound"
    FILE_TOO_LARGE = "FileTooLarge"
    IO_ERROR = "IoError"
    AMBIGUOUS_DIRECTORY = "AmbiguousDirectory"
    ACTION_FAILED = "ActionFailed"
    INTERNAL_ERROR = "InternalError"


@dataclass(frozen=True)
class CandidateFile:
    """A file under the scan root that may be a DR log."""

    path: Path
    size_bytes: int
    encoding: Optional[str] = None

    @property
    def filename(self) -> str:
        """Just the filename without path."""
        return self.path.name

    @property
    def directory(self) -> Path:
        """Directory holding the file."""
        return self.path.parent


@dataclass(frozen=True)
class TrackEntry:
    """One row of a log's per-track table."""

    index: int
    dr_value: int
    title: Optional[str] = None
    peak_db: Optional[float] = None
    rms_db: Optional[float] = None
    duration: Optional[str] = None

    @property
    def category(self) -> HealthCategory:
        return classify(self.dr_value)


@dataclass(frozen=True)
class AlbumInfo:
    """Album level metadata found around the track table."""

    analyzed: Optional[str] = None
    log_date: Optional[str] = None
    stated_track_count: Optional[int] = None
    sample_rate: Optional[str] = None
    channels: Optional[str] = None
    bits_per_sample: Optional[str] = None
    bitrate: Optional[str] = None
    codec: Optional[str] = None


@dataclass(frozen=True)
class LogReport:
    """Structured result of parsing one recognized DR log."""

    source: CandidateFile
    variant: LanguageVariant
    tracks: Tuple[TrackEntry, ...] = ()
    overall_dr: Optional[int] = None
    stated_dr: Optional[int] = None
    computed_dr: Optional[int] = None
    album: AlbumInfo = field(default_factory=AlbumInfo)
    is_valid: bool = True
    reason: Optional[FailureReason] = None
    excerpt: Optional[str] = None
    warnings: Tuple[str, ...] = ()

    def __post_init__(self):
        """Validate the report invariant."""
        if self.is_valid and (self.overall_dr is None or not self.tracks):
            raise ValueError("A valid report needs an overall DR and tracks")
        if not self.is_valid and self.reason is None:
            raise ValueError("An invalid report needs a reason")

    @property
    def path(self) -> Path:
        return self.source.path

    @property
    def category(self) -> Optional[HealthCategory]:
        """Health category of the overall DR, None for invalid reports."""
        if self.overall_dr is None:
            return None
        return classify(self.overall_dr)

    @property
    def has_stated_value(self) -> bool:
        return self.stated_dr is not None

    @property
    def dr_label(self) -> str:
        """Display label in the measurement tools' own notation."""
        if self.overall_dr is None:
            return "ERR"
        return f"DR{self.overall_dr}"


@dataclass(frozen=True)
class ScanFailure:
    """A candidate file that did not yield a report."""

    candidate: CandidateFile
    reason: FailureReason
    message: Optional[str] = None

    @property
    def path(self) -> Path:
        return self.candidate.path
