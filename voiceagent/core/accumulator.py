"""Per-call buffering of inbound audio frames into processing windows."""

from __future__ import annotations

import time

DEFAULT_WINDOW_FRAMES = 20  # 20 x 20ms telephony frames ~ 400ms


class AudioChunkAccumulator:
    """Append-only frame buffer drained one window at a time.

    Frames are never reordered or dropped. After a drain the buffer starts
    empty, so frames arriving while a window is being processed collect
    for the next window.
    """

    def __init__(self, window_frames: int = DEFAULT_WINDOW_FRAMES) -> None:
        if window_frames < 1:
            raise ValueError("window_frames must be at least 1")
        self._window_frames = window_frames
        self._frames: list[bytes] = []
        self._byte_count = 0
        self._total_frames = 0
        self._ready_at: float | None = None

    @property
    def window_frames(self) -> int:
        return self._window_frames

    @property
    def frame_count(self) -> int:
        """Frames currently buffered."""
        return len(self._frames)

    @property
    def byte_count(self) -> int:
        """Bytes currently buffered."""
        return self._byte_count

    @property
    def total_frames(self) -> int:
        """Frames pushed over the accumulator's lifetime."""
        return self._total_frames

    @property
    def ready_at(self) -> float | None:
        """perf_counter() reading taken when the current window filled up."""
        return self._ready_at

    def push(self, frame: bytes) -> None:
        self._frames.append(frame)
        self._byte_count += len(frame)
        self._total_frames += 1
        if self._ready_at is None and len(self._frames) >= self._window_frames:
            self._ready_at = time.perf_counter()

    def is_window_ready(self) -> bool:
        return len(self._frames) >= self._window_frames

    def drain(self) -> bytes:
        """Return every buffered frame as one window and reset the buffer."""
        frames, self._frames = self._frames, []
        self._byte_count = 0
        self._ready_at = None
        return b"".join(frames)

    def clear(self) -> None:
        self._frames = []
        self._byte_count = 0
        self._ready_at = None

    def __len__(self) -> int:
        return len(self._frames)
