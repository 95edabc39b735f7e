"""Tests for DR log decoding, reading and parsing."""

import time
from pathlib import Path

import pytest

from dr_analyzer.classification.models import HealthCategory
from dr_analyzer.core.config import DecimalPolicy, ScanSettings
from dr_analyzer.core.exceptions import FileTooLargeError, LogDecodeError
from dr_analyzer.parsing import services as parsing_services
from dr_analyzer.parsing.models import (
    CandidateFile,
    FailureReason,
    LanguageVariant,
    LogReport,
    ScanFailure,
)
from dr_analyzer.parsing.services import (
    analyze_file,
    decode_log_bytes,
    parse_log,
    read_log_file,
    round_half_up_mean,
    to_dr_int,
)
from dr_analyzer.parsing.variants import detect_variant

SOURCE = CandidateFile(path=Path("Artist/Album/dr.txt"), size_bytes=0)


def _parse(text, variant=LanguageVariant.ENGLISH, policy=DecimalPolicy.TRUNCATE):
    return parse_log(text, variant, SOURCE, policy)


class TestNumberHelpers:
    """Test DR value conversion helpers."""

    @pytest.mark.parametrize(
        "raw, policy, expected",
        [
            ("12", DecimalPolicy.TRUNCATE, 12),
            ("8.8", DecimalPolicy.TRUNCATE, 8),
            ("8,8", DecimalPolicy.TRUNCATE, 8),
            ("8.8", DecimalPolicy.ROUND_HALF_UP, 9),
            ("8.5", DecimalPolicy.ROUND_HALF_UP, 9),
            ("8.4", DecimalPolicy.ROUND_HALF_UP, 8),
        ],
    )
    def test_to_dr_int(self, raw, policy, expected):
        assert to_dr_int(raw, policy) == expected

    def test_mean_rounds_half_up(self):
        assert round_half_up_mean([8, 7, 6, 9]) == 8
        assert round_half_up_mean([10, 11]) == 11
        assert round_half_up_mean([11, 13, 12, 12, 11]) == 12

    def test_mean_of_nothing_raises(self):
        with pytest.raises(ValueError):
            round_half_up_mean([])


class TestLogParser:
    """Test parsing of real-format logs."""

    def test_foobar_english(self, read_fixture):
        report = _parse(read_fixture("foobar_en.txt"))

        assert report.is_valid
        assert report.variant is LanguageVariant.ENGLISH
        assert [t.dr_value for t in report.tracks] == [11, 13, 12, 12, 11]
        assert [t.index for t in report.tracks] == [1, 2, 3, 4, 5]
        assert report.overall_dr == report.stated_dr == report.computed_dr == 12
        assert report.category is HealthCategory.MINT
        assert report.dr_label == "DR12"
        assert report.warnings == ()

        third = report.tracks[2]
        assert third.title == "03-Time"
        assert third.duration == "7:06"
        assert third.peak_db == pytest.approx(-0.10)
        assert third.rms_db == pytest.approx(-17.46)

        album = report.album
        assert album.analyzed == "Pink Floyd / The Dark Side of the Moon"
        assert album.log_date == "2013-03-02 16:41:20"
        assert album.stated_track_count == 5
        assert album.sample_rate == "44100 Hz"
        assert album.channels == "2"
        assert album.bits_per_sample == "16"
        assert album.bitrate == "863 kbps"
        assert album.codec == "FLAC"

    def test_offline_meter_layout(self, read_fixture):
        report = _parse(read_fixture("offline_en.log"))

        assert report.is_valid
        assert [t.dr_value for t in report.tracks] == [8, 7, 6, 9]
        assert report.tracks[0].title == "01 - Everything In Its Right Place.flac"
        assert report.tracks[0].duration is None
        assert report.computed_dr == 8
        assert report.overall_dr == 8
        assert report.album.analyzed == "D:\\Music\\Radiohead\\2000 - Kid A"
        assert report.album.stated_track_count == 4
        assert report.category is HealthCategory.BURNT

    def test_missing_footer_uses_computed_mean(self, read_fixture):
        report = _parse(read_fixture("no_footer_en.txt"))

        assert report.is_valid
        assert report.stated_dr is None
        assert not report.has_stated_value
        assert report.overall_dr == report.computed_dr == 10
        assert report.category is HealthCategory.YELLOW

    def test_russian_log(self, read_fixture):
        report = _parse(read_fixture("foobar_ru.txt"), LanguageVariant.RUSSIAN)

        assert report.is_valid
        assert report.variant is LanguageVariant.RUSSIAN
        assert [t.dr_value for t in report.tracks] == [10, 11, 9, 10]
        assert report.tracks[1].peak_db == pytest.approx(-0.35)
        assert report.tracks[0].title == "01-Группа крови"
        assert report.album.analyzed == "Кино / Группа крови"
        assert report.album.stated_track_count == 4
        assert report.album.sample_rate == "44100 Hz"
        assert report.album.codec == "FLAC"

    def test_stated_value_wins_over_mean(self, read_fixture):
        report = _parse(read_fixture("foobar_ru.txt"), LanguageVariant.RUSSIAN)

        assert report.stated_dr == 8
        assert report.computed_dr == 10
        assert report.overall_dr == 8
        assert any("differs from computed mean" in w for w in report.warnings)

    def test_damaged_rows_are_skipped(self, read_fixture):
        report = _parse(read_fixture("errors_en.txt"))

        assert report.is_valid
        assert [t.dr_value for t in report.tracks] == [8, 6]
        assert [t.index for t in report.tracks] == [1, 3]
        assert report.stated_dr is None
        assert report.overall_dr == report.computed_dr == 7

        assert any("unreadable DR value 'DRERR'" in w for w in report.warnings)
        assert any("DRERR as the official value" in w for w in report.warnings)
        assert any("states 3 tracks but 2 were read" in w for w in report.warnings)

    def test_round_half_up_policy(self, read_fixture):
        report = _parse(read_fixture("errors_en.txt"), policy=DecimalPolicy.ROUND_HALF_UP)

        assert [t.dr_value for t in report.tracks] == [9, 6]
        assert report.overall_dr == 8

    def test_fractional_footer_follows_policy(self, read_fixture):
        text = read_fixture("foobar_en.txt").replace(
            "Official DR value: DR12", "Official DR value: DR11.5"
        )

        assert _parse(text).stated_dr == 11
        assert _parse(text, policy=DecimalPolicy.ROUND_HALF_UP).stated_dr == 12

    def test_no_tracks_gives_invalid_report(self, invalid_log):
        report = _parse(invalid_log)

        assert not report.is_valid
        assert report.reason is FailureReason.NO_TRACKS_FOUND
        assert report.tracks == ()
        assert report.overall_dr is None
        assert report.stated_dr == 10
        assert report.category is None
        assert report.dr_label == "ERR"
        assert report.excerpt.startswith("-----")

    def test_byte_order_mark_and_crlf(self, read_fixture):
        text = "\ufeff" + read_fixture("foobar_en.txt").replace("\n", "\r\n")
        report = _parse(text)

        assert report.overall_dr == 12
        assert len(report.tracks) == 5
        assert report.album.codec == "FLAC"

    def test_mixed_line_endings(self, read_fixture):
        lines = read_fixture("offline_en.log").split("\n")
        endings = ["\r\n", "\r", "\n"]
        text = "".join(
            line + endings[i % len(endings)] for i, line in enumerate(lines)
        )
        report = _parse(text)

        assert [t.dr_value for t in report.tracks] == [8, 7, 6, 9]
        assert report.overall_dr == 8

    def test_rows_after_footer_are_ignored(self, read_fixture):
        text = read_fixture("foobar_en.txt") + (
            "DR5       -1.00 dB    -5.00 dB      1:00 99-Bonus\n"
        )
        report = _parse(text)

        assert len(report.tracks) == 5
        assert report.overall_dr == 12
        assert any("after the footer were ignored" in w for w in report.warnings)

    def test_unknown_variant_is_rejected(self):
        with pytest.raises(ValueError):
            _parse("anything", LanguageVariant.UNKNOWN)

    def test_unreadable_first_row_ends_header(self):
        text = (
            "DR         Peak         RMS     Duration Track\n"
            "DRERR     -0.10 dB   -12.00 dB      3:00 01-Broken\n"
            "Analyzed: Late Header\n"
            "DR10      -0.10 dB   -12.00 dB      3:00 02-Fine\n"
            "Official DR value: DR10\n"
        )
        report = _parse(text)

        assert report.album.analyzed is None
        assert [t.index for t in report.tracks] == [2]
        assert report.overall_dr == 10
        assert any(w.startswith("Line 2:") for w in report.warnings)


class TestLongLines:
    """Lines padded with long whitespace runs parse in linear time."""

    PADDING = " " * 1_000_000

    def test_whitespace_inside_track_title(self):
        text = (
            "Analyzed: Padded\n"
            "DR         Peak         RMS     Duration Track\n"
            f"DR8       -1.00 dB    -2.00 dB      3:00 a{self.PADDING}b\n"
            "Official DR value: DR8\n"
        )
        start = time.perf_counter()
        report = _parse(text)
        elapsed = time.perf_counter() - start

        assert elapsed < 5.0
        assert report.overall_dr == 8
        title = report.tracks[0].title
        assert title.startswith("a") and title.endswith("b")
        assert len(title) == len(self.PADDING) + 2

    def test_trailing_whitespace_is_dropped(self, read_fixture):
        text = read_fixture("foobar_en.txt").replace(
            "Codec:", "Codec:" + self.PADDING, 1
        ).replace("\n", self.PADDING + "\n", 12)
        start = time.perf_counter()
        report = _parse(text)
        elapsed = time.perf_counter() - start

        assert elapsed < 5.0
        assert report.album.codec == "FLAC"
        assert all(t.title == t.title.strip() for t in report.tracks)
        assert report.overall_dr == 12

    def test_whitespace_inside_footer_field(self, read_fixture):
        text = "\n".join(
            f"Codec: a{self.PADDING}b" if line.startswith("Codec:") else line
            for line in read_fixture("foobar_en.txt").split("\n")
        )
        start = time.perf_counter()
        report = _parse(text)
        elapsed = time.perf_counter() - start

        assert elapsed < 5.0
        assert report.album.codec.startswith("a")
        assert report.album.codec.endswith("b")

    def test_blank_line_flood_is_detected_quickly(self):
        text = "\n" * 1_000_000 + "Official DR value: DR8\n"
        start = time.perf_counter()
        variant = detect_variant(text)
        elapsed = time.perf_counter() - start

        assert elapsed < 5.0
        assert variant is LanguageVariant.ENGLISH


class TestLogReportInvariant:
    def test_valid_report_needs_tracks(self):
        with pytest.raises(ValueError):
            LogReport(source=SOURCE, variant=LanguageVariant.ENGLISH, overall_dr=10)

    def test_invalid_report_needs_reason(self):
        with pytest.raises(ValueError):
            LogReport(source=SOURCE, variant=LanguageVariant.ENGLISH, is_valid=False)


class TestDecodeLogBytes:
    """Test the encoding fallback chain."""

    def test_plain_utf8(self):
        text, encoding = decode_log_bytes("Official DR value: DR8".encode("utf-8"))
        assert text == "Official DR value: DR8"
        assert encoding == "utf-8"

    def test_utf8_byte_order_mark_is_stripped(self):
        text, encoding = decode_log_bytes(b"\xef\xbb\xbfOfficial DR value: DR8")
        assert text == "Official DR value: DR8"
        assert encoding == "utf-8-sig"

    def test_legacy_code_page_fallback(self, read_fixture):
        source_text = read_fixture("foobar_ru.txt")
        text, encoding = decode_log_bytes(source_text.encode("cp1251"))
        assert text == source_text
        assert encoding == "cp1251"

    def test_utf16_with_byte_order_mark(self, read_fixture):
        source_text = read_fixture("foobar_en.txt")
        text, encoding = decode_log_bytes(source_text.encode("utf-16"))
        assert text == source_text
        assert encoding == "utf-16"

    def test_undecodable_bytes(self):
        # 0x98 is invalid UTF-8 here and unassigned in cp1251
        with pytest.raises(LogDecodeError) as exc_info:
            decode_log_bytes(b"Official DR value: DR8\n\x98\xff")
        assert exc_info.value.encodings == ("utf-8", "cp1251")


class TestReadLogFile:
    def test_reads_small_file(self, tmp_path, candidate_for):
        path = tmp_path / "dr.txt"
        path.write_bytes(b"Official DR value: DR8")
        assert read_log_file(candidate_for(path)) == b"Official DR value: DR8"

    def test_rejects_file_over_cap(self, tmp_path, candidate_for):
        path = tmp_path / "dr.txt"
        path.write_bytes(b"x" * 100)
        with pytest.raises(FileTooLargeError) as exc_info:
            read_log_file(candidate_for(path), max_bytes=99)
        assert exc_info.value.size_bytes == 100
        assert exc_info.value.limit_bytes == 99

    def test_file_at_cap_is_read(self, tmp_path, candidate_for):
        path = tmp_path / "dr.txt"
        path.write_bytes(b"x" * 100)
        assert len(read_log_file(candidate_for(path), max_bytes=100)) == 100


class TestAnalyzeFile:
    """Test the per-file pipeline end to end."""

    @pytest.fixture
    def settings(self):
        return ScanSettings(max_workers=1)

    def test_valid_log(self, fixtures_dir, candidate_for, settings):
        result = analyze_file(candidate_for(fixtures_dir / "foobar_en.txt"), settings)

        assert isinstance(result, LogReport)
        assert result.overall_dr == 12
        assert result.source.encoding == "utf-8"

    def test_cp1251_log_on_disk(self, tmp_path, read_fixture, candidate_for, settings):
        path = tmp_path / "dr.txt"
        path.write_bytes(read_fixture("foobar_ru.txt").encode("cp1251"))
        result = analyze_file(candidate_for(path), settings)

        assert isinstance(result, LogReport)
        assert result.variant is LanguageVariant.RUSSIAN
        assert result.overall_dr == 8
        assert result.source.encoding == "cp1251"

    def test_unrelated_text(self, fixtures_dir, candidate_for, settings):
        result = analyze_file(candidate_for(fixtures_dir / "notes.txt"), settings)

        assert isinstance(result, ScanFailure)
        assert result.reason is FailureReason.NOT_A_RECOGNIZED_LOG

    def test_undecodable_file(self, tmp_path, candidate_for, settings):
        path = tmp_path / "garbage.log"
        path.write_bytes(b"\x98\x98\xff\xfe\x00garbage")
        result = analyze_file(candidate_for(path), settings)

        assert isinstance(result, ScanFailure)
        assert result.reason is FailureReason.ENCODING_ERROR

    def test_missing_file(self, tmp_path, settings):
        candidate = CandidateFile(path=tmp_path / "gone.txt", size_bytes=10)
        result = analyze_file(candidate, settings)

        assert isinstance(result, ScanFailure)
        assert result.reason is FailureReason.IO_ERROR

    def test_oversized_file_is_never_opened(
        self, tmp_path, monkeypatch, candidate_for, settings
    ):
        path = tmp_path / "huge.log"
        with open(path, "wb") as handle:
            handle.truncate(2 * 1024 ** 3)

        def refuse_open(*args, **kwargs):
            raise AssertionError("oversized file was opened")

        monkeypatch.setattr(parsing_services, "open", refuse_open, raising=False)
        result = analyze_file(candidate_for(path), settings)

        assert isinstance(result, ScanFailure)
        assert result.reason is FailureReason.FILE_TOO_LARGE
        assert "2147483648 > 4194304" in result.message

    def test_recognized_log_without_tracks(self, tmp_path, invalid_log, candidate_for, settings):
        path = tmp_path / "dr.txt"
        path.write_text(invalid_log, encoding="utf-8")
        result = analyze_file(candidate_for(path), settings)

        assert isinstance(result, LogReport)
        assert not result.is_valid
        assert result.reason is FailureReason.NO_TRACKS_FOUND
