"""Directory walking for candidate DR log files."""

import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from ..core.config import FileConfig
from ..core.exceptions import ScanRootError
from ..parsing.models import CandidateFile, FailureReason, ScanFailure

logger = logging.getLogger(__name__)

WalkItem = Union[CandidateFile, ScanFailure]


class DirectoryWalker:
    """Lazy, restartable walk over a directory tree.

    Iterating the walker yields a CandidateFile for every readable file with
    an accepted extension and a ScanFailure for every entry that could not be
    inspected. Each new iteration starts a fresh walk.
    """

    def __init__(
        self,
        root: Union[str, Path],
        extensions: Iterable[str] = FileConfig.SUPPORTED_EXTENSIONS,
        follow_symlinks: bool = True,
    ):
        """Validate the root; a missing or non-directory root is fatal."""
        path = Path(root).expanduser()
        if not path.exists():
            raise ScanRootError("Scan root does not exist", root=str(path))
        if not path.is_dir():
            raise ScanRootError("Scan root is not a directory", root=str(path))

        self.root = path.resolve()
        self.extensions = frozenset(ext.lower() for ext in extensions)
        self.follow_symlinks = follow_symlinks

    def __iter__(self) -> Iterator[WalkItem]:
        return self.walk()

    def walk(self, cancel=None) -> Iterator[WalkItem]:
        """Walk the tree depth first, in name order within each directory."""
        visited = set()
        stack = [str(self.root)]

        while stack:
            if cancel is not None and cancel.cancelled:
                logger.info("Walk of %s cancelled", self.root)
                return

            current = stack.pop()
            try:
                stat = os.stat(current)
            except OSError as e:
                yield self._failure(current, e)
                continue

            identity = (stat.st_dev, stat.st_ino)
            if identity in visited:
                logger.debug("Skipping already visited directory %s", current)
                continue
            visited.add(identity)

            try:
                with os.scandir(current) as it:
                    entries = sorted(it, key=lambda entry: entry.name)
            except OSError as e:
                yield self._failure(current, e)
                continue

            subdirs = []
            for entry in entries:
                try:
                    if entry.is_dir(follow_symlinks=self.follow_symlinks):
                        subdirs.append(entry.path)
                        continue
                    if not entry.is_file(follow_symlinks=self.follow_symlinks):
                        continue
                except OSError as e:
                    yield self._failure(entry.path, e)
                    continue

                if os.path.splitext(entry.name)[1].lower() not in self.extensions:
                    continue

                try:
                    size = entry.stat(follow_symlinks=self.follow_symlinks).st_size
                except OSError as e:
                    yield self._failure(entry.path, e)
                    continue

                candidate = CandidateFile(path=Path(entry.path), size_bytes=size)
                if not os.access(entry.path, os.R_OK):
                    yield ScanFailure(
                        candidate, FailureReason.IO_ERROR, "File is not readable"
                    )
                    continue
                yield candidate

            stack.extend(reversed(subdirs))

    def collect(self, cancel=None) -> Tuple[List[CandidateFile], List[ScanFailure]]:
        """Run a full walk, splitting candidates from failures."""
        candidates: List[CandidateFile] = []
        failures: List[ScanFailure] = []
        for item in self.walk(cancel):
            if isinstance(item, ScanFailure):
                failures.append(item)
            else:
                candidates.append(item)
        logger.info(
            "Found %d candidate file(s) under %s (%d unreadable)",
            len(candidates),
            self.root,
            len(failures),
        )
        return candidates, failures

    def _failure(self, path: str, error: Optional[OSError]) -> ScanFailure:
        logger.warning("Cannot access %s: %s", path, error)
        return ScanFailure(
            CandidateFile(path=Path(path), size_bytes=0),
            FailureReason.IO_ERROR,
            str(error),
        )
