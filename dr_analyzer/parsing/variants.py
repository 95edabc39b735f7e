"""Grammar tables for the English and Russian DR log layouts.

Both foobar2000's ``foo_dr_meter`` and the TT DR Offline Meter write the
same three-part layout: a header naming what was analyzed, a table with one
``DR<n>  <peak> dB  <rms> dB  [duration]  <title>`` row per track, and a
footer stating the official album value. The localized builds differ in the
header and footer labels, in the table heading and in the decimal separator.

Each variant is a plain record of compiled patterns consumed by the shared
line state machine in :mod:`dr_analyzer.parsing.services`.
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional, Pattern, Tuple

from .models import LanguageVariant

_FLAGS = re.IGNORECASE | re.MULTILINE


def _number(separators: str) -> str:
    return rf"[-+]?(?:\d+(?:[{separators}]\d+)?|inf)"


def _track_row(separators: str) -> Pattern:
    number = _number(separators)
    return re.compile(
        rf"^\s*DR\s*(?P<dr>\S+?)\s+"
        rf"(?P<peak>{number})\s*(?:dB|дБ)\s+"
        rf"(?P<rms>{number})\s*(?:dB|дБ)"
        r"(?:\s+(?P<duration>\d+:\d{2}(?::\d{2})?))?"
        r"(?:\s+(?P<title>\S.*))?\s*$",
        re.IGNORECASE,
    )


@dataclass(frozen=True)
class VariantGrammar:
    """Marker and field patterns for one localized log layout."""

    variant: LanguageVariant
    header_markers: Tuple[Pattern, ...]
    log_date: Pattern
    table_heading: Pattern
    track_row: Pattern
    official_dr: Pattern
    track_count: Pattern
    technical_fields: Dict[str, Pattern]

    def marker_hits(self, text: str) -> Tuple[bool, bool, bool]:
        """Which of (header, table heading, footer) markers occur in text."""
        header = any(marker.search(text) for marker in self.header_markers)
        table = self.table_heading.search(text) is not None
        footer = self.official_dr.search(text) is not None
        return header, table, footer

    def header_value(self, line: str) -> Optional[str]:
        """Analyzed album or folder named on a header line, if any."""
        for marker in self.header_markers:
            match = marker.search(line)
            if match:
                return match.group("value").strip() or None
        return None

    def is_footer_line(self, line: str) -> bool:
        if self.official_dr.search(line) or self.track_count.search(line):
            return True
        return any(p.search(line) for p in self.technical_fields.values())


ENGLISH = VariantGrammar(
    variant=LanguageVariant.ENGLISH,
    header_markers=(
        re.compile(
            r"^[ \t]*Analyzed(?:[ \t]+folder)?[ \t]*:[ \t]*(?P<value>.*)$", _FLAGS
        ),
    ),
    log_date=re.compile(r"log date\s*:\s*(?P<value>\S.*)", _FLAGS),
    table_heading=re.compile(r"^[ \t]*DR[ \t]+Peak[ \t]+RMS\b", _FLAGS),
    track_row=_track_row("."),
    official_dr=re.compile(
        r"Official DR value\s*:\s*DR\s*(?P<value>\d+(?:[.,]\d+)?|ERR)", _FLAGS
    ),
    track_count=re.compile(
        r"^\s*Number of (?:tracks|files)\s*:\s*(?P<value>\d+)", _FLAGS
    ),
    technical_fields={
        "sample_rate": re.compile(r"^\s*Samplerate\s*:\s*(?P<value>\S.*)", _FLAGS),
        "channels": re.compile(r"^\s*Channels\s*:\s*(?P<value>\S.*)", _FLAGS),
        "bits_per_sample": re.compile(
            r"^\s*Bits per sample\s*:\s*(?P<value>\S.*)", _FLAGS
        ),
        "bitrate": re.compile(r"^\s*Bitrate\s*:\s*(?P<value>\S.*)", _FLAGS),
        "codec": re.compile(r"^\s*Codec\s*:\s*(?P<value>\S.*)", _FLAGS),
    },
)

RUSSIAN = VariantGrammar(
    variant=LanguageVariant.RUSSIAN,
    header_markers=(
        re.compile(
            r"^[ \t]*Анализ(?:[ \t]+папки)?[ \t]*:[ \t]*(?P<value>.*)$", _FLAGS
        ),
        re.compile(
            r"^[ \t]*Проанализировано[ \t]*:[ \t]*(?P<value>.*)$", _FLAGS
        ),
    ),
    log_date=re.compile(r"(?:log date|дата лога)\s*:\s*(?P<value>\S.*)", _FLAGS),
    table_heading=re.compile(r"^[ \t]*DR[ \t]+(?:Пики?|Peak)[ \t]+RMS\b", _FLAGS),
    track_row=_track_row(".,"),
    official_dr=re.compile(
        r"Реальные значения DR\s*:\s*DR\s*(?P<value>\d+(?:[.,]\d+)?|ERR)", _FLAGS
    ),
    track_count=re.compile(
        r"^\s*Количество (?:треков|файлов)\s*:\s*(?P<value>\d+)", _FLAGS
    ),
    technical_fields={
        "sample_rate": re.compile(
            r"^\s*Частота(?: дискретизации)?\s*:\s*(?P<value>\S.*)", _FLAGS
        ),
        "channels": re.compile(r"^\s*Каналы?\s*:\s*(?P<value>\S.*)", _FLAGS),
        "bits_per_sample": re.compile(
            r"^\s*Разрядность\s*:\s*(?P<value>\S.*)", _FLAGS
        ),
        "bitrate": re.compile(r"^\s*Битрейт\s*:\s*(?P<value>\S.*)", _FLAGS),
        "codec": re.compile(r"^\s*Кодек\s*:\s*(?P<value>\S.*)", _FLAGS),
    },
)

GRAMMARS = {grammar.variant: grammar for grammar in (ENGLISH, RUSSIAN)}


def grammar_for(variant: LanguageVariant) -> VariantGrammar:
    """Grammar record for a detected variant."""
    try:
        return GRAMMARS[variant]
    except KeyError:
        raise ValueError(f"No grammar for variant {variant.value!r}")


def detect_variant(text: str) -> LanguageVariant:
    """Pick the log layout whose markers occur in text.

    A layout matches on its footer phrase alone, or on a header marker
    together with its table heading. When both layouts match, the one with
    more markers present wins and ties go to English.
    """
    best = LanguageVariant.UNKNOWN
    best_score = 0
    for grammar in (ENGLISH, RUSSIAN):
        header, table, footer = grammar.marker_hits(text)
        if not (footer or (header and table)):
            continue
        score = header + table + footer
        if score > best_score:
            best, best_score = grammar.variant, score
    return best
