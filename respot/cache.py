"""On-disk cache for credentials, volume and audio files."""

from __future__ import annotations

import itertools
import json
import logging
import os
import shutil
import threading
import time
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Union

from .authentication import Credentials

log = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


class CacheError(Exception):
    """Raised when the audio cache location is not usable."""

    def __init__(self, message: str = "audio cache location is not configured") -> None:
        super().__init__(message)


class SizeLimiter:
    """Tracks file sizes and access times and yields the oldest files past a limit."""

    def __init__(self, limit: int) -> None:
        self.size_limit = limit
        self.in_use = 0
        self._sizes: dict[Path, int] = {}
        self._access: dict[Path, tuple[float, int]] = {}
        self._counter = itertools.count()

    def add(self, file: PathLike, size: int, accessed: float) -> None:
        """Record a file; an existing entry is replaced."""
        path = Path(file)
        self.in_use += size
        self._access[path] = (accessed, next(self._counter))
        old_size = self._sizes.get(path)
        self._sizes[path] = size
        if old_size is not None:
            self.in_use -= old_size

    def exceeds_limit(self) -> bool:
        return self.in_use > self.size_limit

    def pop(self) -> Optional[Path]:
        """Remove and return the least recently accessed file while over the limit."""
        if not self.exceeds_limit():
            return None
        if not self._access:
            log.error("in_use was > 0, so the queue should have contained an item.")
            return None
        oldest = min(self._access, key=self._access.__getitem__)
        del self._access[oldest]
        size = self._sizes.pop(oldest, None)
        if size is None:
            log.error("`queue` and `sizes` should have the same keys.")
        else:
            self.in_use -= size
        return oldest

    def update(self, file: PathLike, access_time: float) -> bool:
        """Update the access time of a known file; return whether it was known."""
        path = Path(file)
        if path not in self._access:
            return False
        self._access[path] = (access_time, next(self._counter))
        return True

    def remove(self, file: PathLike) -> bool:
        """Forget a file; return whether it was known."""
        path = Path(file)
        if self._access.pop(path, None) is None:
            return False
        size = self._sizes.pop(path, None)
        if size is None:
            log.error("`queue` and `sizes` should have the same keys.")
        else:
            self.in_use -= size
        return True


def _prune(pop: Callable[[], Optional[Path]]) -> None:
    count = 0
    last_error: Optional[OSError] = None
    first = True
    while (file := pop()) is not None:
        if first:
            log.debug("Cache dir exceeds limit, removing least recently used files.")
            first = False
        try:
            os.remove(file)
        except OSError as exc:
            log.warning("Could not remove file %s from cache dir: %s", file, exc)
            last_error = exc
        else:
            count += 1
    if count:
        log.info("Removed %d cache files.", count)
    if last_error is not None:
        raise last_error


def _init_dir(limiter: SizeLimiter, path: Path) -> None:
    try:
        entries = list(os.scandir(path))
    except OSError as exc:
        log.warning("Could not read directory %s in cache dir: %s", path, exc)
        return
    for entry in entries:
        try:
            if entry.is_symlink() or entry.is_dir(follow_symlinks=False):
                _init_dir(limiter, Path(entry.path))
            elif entry.is_file(follow_symlinks=False):
                try:
                    stat = entry.stat(follow_symlinks=False)
                except OSError as exc:
                    log.warning("Could not read file %s in cache dir: %s", entry.path, exc)
                    continue
                limiter.add(Path(entry.path), stat.st_size, stat.st_atime)
            else:
                log.warning("File %s in cache dir has unsupported type", entry.path)
        except OSError as exc:
            log.warning("Could not get type of file %s in cache dir: %s", entry.path, exc)


class FsSizeLimiter:
    """A thread-safe size limiter over the files of a directory tree."""

    def __init__(self, path: PathLike, limit: int) -> None:
        limiter = SizeLimiter(limit)
        _init_dir(limiter, Path(path))
        _prune(limiter.pop)
        self._limiter = limiter
        self._lock = threading.Lock()

    def _pop(self) -> Optional[Path]:
        with self._lock:
            return self._limiter.pop()

    def add(self, file: PathLike, size: int) -> None:
        with self._lock:
            self._limiter.add(file, size, time.time())

    def touch(self, file: PathLike) -> bool:
        with self._lock:
            return self._limiter.update(file, time.time())

    def remove(self, file: PathLike) -> bool:
        with self._lock:
            return self._limiter.remove(file)

    def prune(self) -> None:
        """Delete least recently used files until the limit holds."""
        _prune(self._pop)


class Cache:
    """A cache for volume, credentials and audio files."""

    def __init__(
        self,
        credentials_path: Optional[PathLike] = None,
        volume_path: Optional[PathLike] = None,
        audio_path: Optional[PathLike] = None,
        size_limit: Optional[int] = None,
    ) -> None:
        self._credentials_location: Optional[Path] = None
        self._volume_location: Optional[Path] = None
        self._audio_location: Optional[Path] = None
        self._size_limiter: Optional[FsSizeLimiter] = None

        if credentials_path is not None:
            os.makedirs(credentials_path, exist_ok=True)
            self._credentials_location = Path(credentials_path) / "credentials.json"

        if volume_path is not None:
            os.makedirs(volume_path, exist_ok=True)
            self._volume_location = Path(volume_path) / "volume"

        if audio_path is not None:
            os.makedirs(audio_path, exist_ok=True)
            self._audio_location = Path(audio_path)
            if size_limit is not None:
                self._size_limiter = FsSizeLimiter(audio_path, size_limit)

    def credentials(self) -> Optional[Credentials]:
        """Return the stored credentials, or None if there are none."""
        if self._credentials_location is None:
            return None
        try:
            contents = self._credentials_location.read_text(encoding="utf-8")
            return Credentials.from_dict(json.loads(contents))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            log.warning("Error reading credentials from cache: %s", exc)
            return None

    def save_credentials(self, credentials: Credentials) -> None:
        if self._credentials_location is None:
            return
        try:
            self._credentials_location.write_text(
                json.dumps(credentials.to_dict()), encoding="utf-8"
            )
        except OSError as exc:
            log.warning("Cannot save credentials to cache: %s", exc)

    def volume(self) -> Optional[int]:
        """Return the stored volume, or None if there is none or it is invalid."""
        if self._volume_location is None:
            return None
        try:
            contents = self._volume_location.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            log.warning("Error reading volume from cache: %s", exc)
            return None
        text = contents[1:] if contents.startswith("+") else contents
        if not text.isascii() or not text.isdigit() or int(text) > 0xFFFF:
            log.warning("Error reading volume from cache: invalid value %r", contents)
            return None
        return int(text)

    def save_volume(self, volume: int) -> None:
        if self._volume_location is None:
            return
        try:
            self._volume_location.write_text(str(volume), encoding="utf-8")
        except OSError as exc:
            log.warning("Cannot save volume to cache: %s", exc)

    def file_path(self, file_id: bytes) -> Optional[Path]:
        """Return where an audio file is stored, or None without an audio location."""
        if self._audio_location is None:
            return None
        name = bytes(file_id).hex()
        return self._audio_location / name[:2] / name[2:]

    def open_file(self, file_id: bytes) -> Optional[BinaryIO]:
        """Open a cached audio file for reading, or return None."""
        path = self.file_path(file_id)
        if path is None:
            return None
        try:
            handle = open(path, "rb")
        except FileNotFoundError:
            return None
        except OSError as exc:
            log.warning("Error reading file from cache: %s", exc)
            return None
        if self._size_limiter is not None and not self._size_limiter.touch(path):
            log.error("limiter could not touch %s", path)
        return handle

    def save_file(self, file_id: bytes, contents: BinaryIO) -> Path:
        """Copy a stream into the cache and return its path."""
        path = self.file_path(file_id)
        if path is None:
            raise CacheError()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as out:
                shutil.copyfileobj(contents, out)
                size = out.tell()
        except OSError as exc:
            raise CacheError() from exc
        if self._size_limiter is not None:
            self._size_limiter.add(path, size)
            self._size_limiter.prune()
        return path

    def remove_file(self, file_id: bytes) -> None:
        path = self.file_path(file_id)
        if path is None:
            raise CacheError()
        os.remove(path)
        if self._size_limiter is not None:
            self._size_limiter.remove(path)