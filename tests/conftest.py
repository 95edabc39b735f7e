"""Shared test fixtures for DR analyzer tests."""

import shutil
from pathlib import Path

import pytest

from dr_analyzer.parsing.models import CandidateFile

FIXTURES_DIR = Path(__file__).parent / "fixtures"

INVALID_LOG = """\
--------------------------------------------------------------------------------
Analyzed: Nobody / Nothing
--------------------------------------------------------------------------------

DR         Peak         RMS     Duration Track
--------------------------------------------------------------------------------
--------------------------------------------------------------------------------

Official DR value: DR10
================================================================================
"""


def load_fixture(name: str) -> str:
    """Text of a fixture log."""
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


def make_candidate(path: Path) -> CandidateFile:
    """CandidateFile for an existing path."""
    return CandidateFile(path=path, size_bytes=path.stat().st_size)


@pytest.fixture
def fixtures_dir():
    """Directory holding real-format sample logs."""
    return FIXTURES_DIR


@pytest.fixture
def library(tmp_path):
    """A small music library with valid, invalid and unrelated files.

    Layout:
        Pink Floyd/DSOTM/foobar_en.txt   valid, DR12 stated
        Pink Floyd/DSOTM/dr_old.log      valid, DR10 computed
        Pink Floyd/DSOTM/empty_dr.txt    recognized log without tracks
        Radiohead/Kid A/offline_en.log   valid, DR8 stated
        Kino/foobar_ru.txt               valid, DR8 stated
        Misc/notes.txt                   not a DR log
        Misc/cover.jpg                   ignored extension
        Orphan/broken.txt                recognized log without tracks
    """
    root = tmp_path / "library"
    dsotm = root / "Pink Floyd" / "DSOTM"
    kid_a = root / "Radiohead" / "Kid A"
    kino = root / "Kino"
    misc = root / "Misc"
    orphan = root / "Orphan"
    for directory in (dsotm, kid_a, kino, misc, orphan):
        directory.mkdir(parents=True)

    shutil.copy(FIXTURES_DIR / "foobar_en.txt", dsotm / "foobar_en.txt")
    shutil.copy(FIXTURES_DIR / "no_footer_en.txt", dsotm / "dr_old.log")
    (dsotm / "empty_dr.txt").write_text(INVALID_LOG, encoding="utf-8")
    shutil.copy(FIXTURES_DIR / "offline_en.log", kid_a / "offline_en.log")
    shutil.copy(FIXTURES_DIR / "foobar_ru.txt", kino / "foobar_ru.txt")
    shutil.copy(FIXTURES_DIR / "notes.txt", misc / "notes.txt")
    (misc / "cover.jpg").write_bytes(b"\xff\xd8\xff\xe0 not really a jpeg")
    (orphan / "broken.txt").write_text(INVALID_LOG, encoding="utf-8")

    return root


@pytest.fixture
def read_fixture():
    """Loader for fixture log text by file name."""
    return load_fixture


@pytest.fixture
def candidate_for():
    """Factory building a CandidateFile for an existing path."""
    return make_candidate


@pytest.fixture
def invalid_log():
    """Recognized log text whose track table is empty."""
    return INVALID_LOG
