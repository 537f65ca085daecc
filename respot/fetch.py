"""Control of the background download of a streamed audio file."""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from .range_set import Range, RangeSet

MINIMUM_DOWNLOAD_SIZE = 64 * 1024
"""Smallest block requested from the servers in one request."""

MINIMUM_THROUGHPUT = 8 * 1024
"""Lowest network throughput expected, in bytes per second."""

INITIAL_PING_TIME_ESTIMATE = 0.5
"""Ping time in seconds assumed before one has been measured."""

MAXIMUM_ASSUMED_PING_TIME = 1.5
"""Measured ping times above this many seconds are capped."""

READ_AHEAD_BEFORE_PLAYBACK = 1.0
"""Seconds of audio that must be present before playback starts."""

READ_AHEAD_DURING_PLAYBACK = 5.0
"""Seconds of audio requested ahead of the read position while playing."""

PREFETCH_THRESHOLD_FACTOR = 4.0
"""Pending bytes below this factor times ping time times data rate trigger a prefetch."""

DOWNLOAD_TIMEOUT = float(MINIMUM_DOWNLOAD_SIZE // MINIMUM_THROUGHPUT)
"""Seconds to wait for progress on a download."""


class AudioFileError(Exception):
    """Raised when an audio file cannot be fetched."""

    CHANNEL = "other end of channel disconnected"
    HEADER = "required header not found"
    NO_DATA = "streamer received no data"
    OUTPUT = "no output available"
    STATUS_CODE = "invalid status code {}"
    WAIT_TIMEOUT = "wait timeout exceeded"


@dataclass(frozen=True)
class FetchCommand:
    """A request to the stream loader: fetch ``range``, or close when it is None."""

    range: Optional[Range] = None

    @classmethod
    def close(cls) -> FetchCommand:
        return cls(None)

    @property
    def is_close(self) -> bool:
        return self.range is None


@dataclass
class DownloadStatus:
    """What has been requested and what has arrived."""

    requested: RangeSet = field(default_factory=RangeSet)
    downloaded: RangeSet = field(default_factory=RangeSet)


class AudioFileShared:
    """State shared between the reader of a file and its downloader."""

    def __init__(self, file_size: int, bytes_per_second: int) -> None:
        self.file_size = file_size
        self.bytes_per_second = bytes_per_second
        self.cond = threading.Condition()
        self.download_status = DownloadStatus()
        self.download_streaming = False
        self.download_timeout = DOWNLOAD_TIMEOUT
        self.read_position = 0
        self.throughput = 0
        self._ping_time_ms = 0

    def ping_time(self) -> float:
        """The estimated ping time in seconds."""
        if self._ping_time_ms > 0:
            return self._ping_time_ms / 1000
        return INITIAL_PING_TIME_ESTIMATE

    def set_ping_time(self, seconds: float) -> None:
        self._ping_time_ms = int(seconds * 1000)

    def mark_downloaded(self, range: Range) -> None:
        """Record that ``range`` has arrived and wake everyone waiting for data."""
        with self.cond:
            self.download_status.downloaded.add_range(range)
            self.cond.notify_all()


class StreamLoaderController:
    """Lets a reader steer the download of the file it reads.

    ``commands`` is a queue that receives :class:`FetchCommand` items; without
    ``shared`` the file is taken to be fully available.
    """

    def __init__(
        self,
        file_size: int,
        commands: Optional[Any] = None,
        shared: Optional[AudioFileShared] = None,
    ) -> None:
        self._file_size = file_size
        self._commands = commands
        self._shared = shared

    def __len__(self) -> int:
        return self._file_size

    def is_empty(self) -> bool:
        return self._file_size == 0

    def range_available(self, range: Range) -> bool:
        if self._shared is None:
            return range.length <= self._file_size - range.start
        with self._shared.cond:
            downloaded = self._shared.download_status.downloaded
            return range.length <= downloaded.contained_length_from_value(range.start)

    def range_to_end_available(self) -> bool:
        if self._shared is None:
            return True
        position = self._shared.read_position
        return self.range_available(Range(position, self._file_size - position))

    def ping_time(self) -> Optional[float]:
        return None if self._shared is None else self._shared.ping_time()

    def _send(self, command: FetchCommand) -> None:
        if self._commands is None:
            return
        try:
            self._commands.put(command)
        except queue.Full:
            # a loader that stopped listening has finished the file already
            pass

    def fetch(self, range: Range) -> None:
        """Ask the loader to fetch ``range``."""
        self._send(FetchCommand(range))

    def fetch_blocking(self, range: Range) -> None:
        """Fetch ``range`` and wait until it has been downloaded."""
        if range.start >= self._file_size:
            range = Range(range.start, 0)
        elif range.end() > self._file_size:
            range = Range(range.start, self._file_size - range.start)

        self.fetch(range)

        shared = self._shared
        if shared is None:
            return
        with shared.cond:
            status = shared.download_status
            while range.length > status.downloaded.contained_length_from_value(range.start):
                if not shared.cond.wait(shared.download_timeout):
                    raise AudioFileError(AudioFileError.WAIT_TIMEOUT)
                covered = status.downloaded.union(status.requested)
                if range.length > covered.contained_length_from_value(range.start):
                    # neither downloaded nor requested, perhaps after a network error
                    self.fetch(range)

    def fetch_next_and_wait(self, request_length: int, wait_length: int) -> None:
        """Request data from the read position on and wait for part of it."""
        if self._shared is None:
            return
        start = self._shared.read_position
        self.fetch(Range(start, request_length))
        self.fetch_blocking(Range(start, wait_length))

    def set_random_access_mode(self) -> None:
        if self._shared is not None:
            self._shared.download_streaming = False

    def set_stream_mode(self) -> None:
        if self._shared is not None:
            self._shared.download_streaming = True

    def close(self) -> None:
        """Stop loading any more data for this file."""
        self._send(FetchCommand.close())