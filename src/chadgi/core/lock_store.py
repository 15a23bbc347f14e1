"""Storage backends for task lock records.

A store holds one opaque JSON document per issue number. The lock manager
decides what goes in it; stores only guarantee that:

- create() is exclusive: it never overwrites an existing record
- replace() is atomic: readers see the old or the new record, never a
  partially written one
"""

import contextlib
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from ..constants import LOCK_FILE_PREFIX, LOCK_FILE_SUFFIX


class LockStore(ABC):
    """Abstract per-issue record storage."""

    @abstractmethod
    def ensure(self) -> None:
        """Create the storage location if missing."""

    @abstractmethod
    def read(self, issue_number: int) -> str | None:
        """Return the raw record for an issue, or None if there is none."""

    @abstractmethod
    def create(self, issue_number: int, content: str) -> bool:
        """Create a record. Returns False if one already exists."""

    @abstractmethod
    def replace(self, issue_number: int, content: str) -> None:
        """Atomically create or overwrite a record."""

    @abstractmethod
    def delete(self, issue_number: int) -> bool:
        """Delete a record. Returns False if there was nothing to delete."""

    @abstractmethod
    def issues(self) -> list[int]:
        """Issue numbers that currently have a record."""


def lock_file_name(issue_number: int) -> str:
    """Get lock file name for an issue (e.g., 42 -> "issue-42.lock")."""
    return f"{LOCK_FILE_PREFIX}{issue_number}{LOCK_FILE_SUFFIX}"


def parse_lock_file_name(name: str) -> int | None:
    """Extract the issue number from a lock file name, or None if unrelated."""
    if not (name.startswith(LOCK_FILE_PREFIX) and name.endswith(LOCK_FILE_SUFFIX)):
        return None
    number = name[len(LOCK_FILE_PREFIX) : -len(LOCK_FILE_SUFFIX)]
    if not number.isdigit():
        return None
    return int(number)


class FileLockStore(LockStore):
    """One file per issue in a (possibly shared) directory.

    Records are staged in a dot-prefixed temp file in the same directory so
    the final rename or link stays on one filesystem.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def path(self, issue_number: int) -> Path:
        """Get path to the lock file for an issue."""
        return self.directory / lock_file_name(issue_number)

    def ensure(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def read(self, issue_number: int) -> str | None:
        try:
            return self.path(issue_number).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def create(self, issue_number: int, content: str) -> bool:
        target = self.path(issue_number)
        tmp_path = self._write_temp(issue_number, content)
        try:
            # link() fails if target exists, and target is complete once visible
            os.link(tmp_path, target)
            return True
        except FileExistsError:
            return False
        except (PermissionError, NotImplementedError):
            # Filesystem without hard links
            return self._create_exclusive(target, content)
        finally:
            with contextlib.suppress(FileNotFoundError):
                tmp_path.unlink()

    def replace(self, issue_number: int, content: str) -> None:
        tmp_path = self._write_temp(issue_number, content)
        try:
            os.replace(tmp_path, self.path(issue_number))
        except OSError:
            with contextlib.suppress(FileNotFoundError):
                tmp_path.unlink()
            raise

    def delete(self, issue_number: int) -> bool:
        try:
            self.path(issue_number).unlink()
            return True
        except FileNotFoundError:
            return False

    def issues(self) -> list[int]:
        if not self.directory.exists():
            return []
        found = []
        for entry in self.directory.iterdir():
            issue_number = parse_lock_file_name(entry.name)
            if issue_number is not None:
                found.append(issue_number)
        return sorted(found)

    def _write_temp(self, issue_number: int, content: str) -> Path:
        fd, name = tempfile.mkstemp(
            dir=self.directory,
            prefix=f".{lock_file_name(issue_number)}.",
            suffix=".tmp",
        )
        tmp_path = Path(name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
        except OSError:
            with contextlib.suppress(FileNotFoundError):
                tmp_path.unlink()
            raise
        return tmp_path

    @staticmethod
    def _create_exclusive(target: Path, content: str) -> bool:
        try:
            fd = os.open(str(target), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            return False
        # Unlike the link path, the record is visible while being written
        data = content.encode("utf-8")
        try:
            while data:
                data = data[os.write(fd, data) :]
            os.fsync(fd)
        except OSError:
            os.close(fd)
            with contextlib.suppress(FileNotFoundError):
                target.unlink()
            raise
        os.close(fd)
        return True


class MemoryLockStore(LockStore):
    """Dict-backed store for tests and single-process embedding."""

    def __init__(self) -> None:
        self.records: dict[int, str] = {}

    def ensure(self) -> None:
        pass

    def read(self, issue_number: int) -> str | None:
        return self.records.get(issue_number)

    def create(self, issue_number: int, content: str) -> bool:
        if issue_number in self.records:
            return False
        self.records[issue_number] = content
        return True

    def replace(self, issue_number: int, content: str) -> None:
        self.records[issue_number] = content

    def delete(self, issue_number: int) -> bool:
        return self.records.pop(issue_number, None) is not None

    def issues(self) -> list[int]:
        return sorted(self.records)
