"""DR log reading, decoding and parsing services."""

import codecs
import logging
import os
import re
from dataclasses import replace
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from .models import (
    AlbumInfo,
    CandidateFile,
    FailureReason,
    LanguageVariant,
    LogReport,
    ScanFailure,
    TrackEntry,
)
from .variants import VariantGrammar, detect_variant, grammar_for
from ..core.config import (
    DecimalPolicy,
    EncodingConfig,
    FileConfig,
    ScanSettings,
)
from ..core.exceptions import FileTooLargeError, LogDecodeError, LogReadError

logger = logging.getLogger(__name__)

_DR_FIELD = re.compile(r"^\d+(?:[.,]\d+)?$")


class _State(Enum):
    HEADER = "header"
    TRACKS = "tracks"
    FOOTER = "footer"


def to_dr_int(raw: str, policy: DecimalPolicy = DecimalPolicy.TRUNCATE) -> int:
    """Convert a DR field such as ``12``, ``8.8`` or ``8,8`` to an integer."""
    value = Decimal(raw.replace(",", "."))
    rounding = ROUND_HALF_UP if policy is DecimalPolicy.ROUND_HALF_UP else ROUND_DOWN
    return int(value.quantize(Decimal(1), rounding=rounding))


def round_half_up_mean(values: List[int]) -> int:
    """Arithmetic mean rounded half up, the DR meter album convention."""
    if not values:
        raise ValueError("Cannot average an empty list of DR values")
    mean = Decimal(sum(values)) / Decimal(len(values))
    return int(mean.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _to_float(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        return float(raw.replace(",", "."))
    except ValueError:
        return None


class LogParser:
    """Line state machine turning DR log text into a LogReport.

    The machine moves HEADER -> TRACKS -> FOOTER. Lines before the first
    track row are searched for header metadata; rows inside the table that
    do not match the track pattern are skipped; footer lines carry the
    stated official value and the technical fields.
    """

    def __init__(self, decimal_policy: DecimalPolicy = DecimalPolicy.TRUNCATE):
        self.decimal_policy = decimal_policy

    def parse(
        self, text: str, variant: LanguageVariant, source: CandidateFile
    ) -> LogReport:
        """Parse text already identified as a log of the given variant."""
        grammar = grammar_for(variant)
        lines = text.lstrip("\ufeff").splitlines()

        state = _State.HEADER
        header: Dict[str, Optional[str]] = {"analyzed": None, "log_date": None}
        footer: Dict[str, Optional[str]] = {}
        tracks: List[TrackEntry] = []
        warnings: List[str] = []
        stated: Optional[int] = None
        stated_seen = False
        row_index = 0
        trailing_rows = 0

        for line_number, line in enumerate(lines, 1):
            line = line.rstrip()
            row = grammar.track_row.match(line)

            if state is _State.HEADER:
                if row is None:
                    self._read_header(grammar, line, header)
                    if grammar.is_footer_line(line):
                        stated, stated_seen = self._read_footer(
                            grammar, line, footer, stated, stated_seen, warnings
                        )
                    continue
                # Any row shaped like a track ends the header, readable or not
                state = _State.TRACKS

            if state is _State.TRACKS:
                if row is not None:
                    row_index += 1
                    entry = self._read_track(row, row_index, line_number, warnings)
                    if entry is not None:
                        tracks.append(entry)
                    continue
                if not grammar.is_footer_line(line):
                    continue
                state = _State.FOOTER

            if row is not None:
                trailing_rows += 1
                continue
            stated, stated_seen = self._read_footer(
                grammar, line, footer, stated, stated_seen, warnings
            )

        if trailing_rows:
            warnings.append(
                f"{trailing_rows} track row(s) after the footer were ignored"
            )

        album = AlbumInfo(
            analyzed=header["analyzed"],
            log_date=header["log_date"],
            stated_track_count=(
                int(footer["track_count"]) if footer.get("track_count") else None
            ),
            sample_rate=footer.get("sample_rate"),
            channels=footer.get("channels"),
            bits_per_sample=footer.get("bits_per_sample"),
            bitrate=footer.get("bitrate"),
            codec=footer.get("codec"),
        )

        if not tracks:
            logger.debug("No readable track rows in %s", source.path)
            return LogReport(
                source=source,
                variant=variant,
                stated_dr=stated,
                album=album,
                is_valid=False,
                reason=FailureReason.NO_TRACKS_FOUND,
                excerpt=text[: FileConfig.EXCERPT_LENGTH],
                warnings=tuple(warnings),
            )

        computed = round_half_up_mean([track.dr_value for track in tracks])
        if stated is not None and stated != computed:
            warnings.append(
                f"Stated DR{stated} differs from computed mean DR{computed}"
            )
        if (
            album.stated_track_count is not None
            and album.stated_track_count != len(tracks)
        ):
            warnings.append(
                f"Log states {album.stated_track_count} tracks but "
                f"{len(tracks)} were read"
            )

        for warning in warnings:
            logger.debug("%s: %s", source.path, warning)

        return LogReport(
            source=source,
            variant=variant,
            tracks=tuple(tracks),
            overall_dr=stated if stated is not None else computed,
            stated_dr=stated,
            computed_dr=computed,
            album=album,
            warnings=tuple(warnings),
        )

    def _read_header(
        self, grammar: VariantGrammar, line: str, header: Dict[str, Optional[str]]
    ) -> None:
        if header["analyzed"] is None:
            header["analyzed"] = grammar.header_value(line)
        if header["log_date"] is None:
            match = grammar.log_date.search(line)
            if match:
                header["log_date"] = match.group("value")

    def _read_track(
        self, row: "re.Match", index: int, line_number: int, warnings: List[str]
    ) -> Optional[TrackEntry]:
        raw = row.group("dr")
        if not _DR_FIELD.match(raw):
            warnings.append(
                f"Line {line_number}: unreadable DR value 'DR{raw}', row skipped"
            )
            return None
        return TrackEntry(
            index=index,
            dr_value=to_dr_int(raw, self.decimal_policy),
            title=(row.group("title") or "").strip() or None,
            peak_db=_to_float(row.group("peak")),
            rms_db=_to_float(row.group("rms")),
            duration=row.group("duration"),
        )

    def _read_footer(
        self,
        grammar: VariantGrammar,
        line: str,
        footer: Dict[str, Optional[str]],
        stated: Optional[int],
        stated_seen: bool,
        warnings: List[str],
    ) -> Tuple[Optional[int], bool]:
        match = grammar.official_dr.search(line)
        if match:
            if stated_seen:
                return stated, stated_seen
            raw = match.group("value")
            if raw.upper() == "ERR":
                warnings.append("Log states DRERR as the official value")
                return None, True
            return to_dr_int(raw, self.decimal_policy), True

        match = grammar.track_count.search(line)
        if match:
            footer.setdefault("track_count", match.group("value"))
            return stated, stated_seen

        for name, pattern in grammar.technical_fields.items():
            match = pattern.search(line)
            if match:
                footer.setdefault(name, match.group("value"))
                break
        return stated, stated_seen


def parse_log(
    text: str,
    variant: LanguageVariant,
    source: CandidateFile,
    decimal_policy: DecimalPolicy = DecimalPolicy.TRUNCATE,
) -> LogReport:
    """Parse DR log text of a known variant."""
    return LogParser(decimal_policy).parse(text, variant, source)


def decode_log_bytes(
    data: bytes, fallback_encoding: str = EncodingConfig.FALLBACK_ENCODING
) -> Tuple[str, str]:
    """Decode raw log bytes, returning (text, encoding used).

    UTF-16 is honoured only behind its byte-order mark. Otherwise strict
    UTF-8 is tried first and the legacy code page second.
    """
    if data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        try:
            return data.decode("utf-16"), "utf-16"
        except UnicodeDecodeError as e:
            raise LogDecodeError(
                "Invalid UTF-16 log", encodings=("utf-16",), details=str(e)
            )

    encoding = EncodingConfig.PRIMARY_ENCODING
    if data.startswith(codecs.BOM_UTF8):
        data = data[len(codecs.BOM_UTF8) :]
        encoding = "utf-8-sig"

    try:
        return data.decode("utf-8"), encoding
    except UnicodeDecodeError:
        logger.debug("Log is not UTF-8, trying %s", fallback_encoding)

    try:
        return data.decode(fallback_encoding), fallback_encoding
    except UnicodeDecodeError as e:
        raise LogDecodeError(
            "Log is neither UTF-8 nor the fallback code page",
            encodings=("utf-8", fallback_encoding),
            details=str(e),
        )


def read_log_file(
    candidate: CandidateFile, max_bytes: int = FileConfig.MAX_LOG_BYTES
) -> bytes:
    """Read a candidate file, refusing anything above max_bytes.

    The size is checked before opening so oversized files are never read.
    """
    path = candidate.path
    try:
        size = os.stat(path).st_size
        if size > max_bytes:
            raise FileTooLargeError(
                "File exceeds log size cap",
                file_path=str(path),
                size_bytes=size,
                limit_bytes=max_bytes,
            )
        with open(path, "rb") as handle:
            data = handle.read(max_bytes + 1)
    except OSError as e:
        raise LogReadError("Failed to read file", file_path=str(path), details=str(e))

    if len(data) > max_bytes:
        raise FileTooLargeError(
            "File grew past log size cap while reading",
            file_path=str(path),
            size_bytes=len(data),
            limit_bytes=max_bytes,
        )
    return data


def analyze_file(
    candidate: CandidateFile, settings: Optional[ScanSettings] = None
) -> Union[LogReport, ScanFailure]:
    """Run the read, decode, detect and parse pipeline for one file.

    Per-file problems are returned as a ScanFailure instead of raised.
    """
    settings = settings or ScanSettings()

    try:
        data = read_log_file(candidate, settings.max_file_bytes)
    except FileTooLargeError as e:
        logger.info("Skipping oversized file %s (%s)", candidate.path, e.details)
        return ScanFailure(candidate, FailureReason.FILE_TOO_LARGE, str(e))
    except LogReadError as e:
        logger.warning("Cannot read %s: %s", candidate.path, e.details)
        return ScanFailure(candidate, FailureReason.IO_ERROR, str(e))

    try:
        text, encoding = decode_log_bytes(data, settings.fallback_encoding)
    except LogDecodeError as e:
        logger.info("Cannot decode %s: %s", candidate.path, e.details)
        return ScanFailure(candidate, FailureReason.ENCODING_ERROR, str(e))

    candidate = replace(candidate, encoding=encoding)
    variant = detect_variant(text)
    if variant is LanguageVariant.UNKNOWN:
        logger.debug("Not a DR log: %s", candidate.path)
        return ScanFailure(
            candidate,
            FailureReason.NOT_A_RECOGNIZED_LOG,
            "No DR log markers found",
        )

    return LogParser(settings.decimal_policy).parse(text, variant, candidate)
