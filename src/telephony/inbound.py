from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass

import numpy as np

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class InboundConfig:
    chunk_frames: int = 75
    min_voiced_frames: int = 4
    max_utterance_frames: int = 750


class InboundPipeline:
    """Accumulates voiced frames and decides when an utterance is flushed.

    A flush is attempted once ``chunk_frames`` frames have been seen since the
    last flush. It is deferred, with nothing reset, while a transcription is
    in flight; it is discarded when fewer than ``min_voiced_frames`` of those
    frames were voiced.
    """

    def __init__(self, cfg: InboundConfig | None = None) -> None:
        self.cfg = cfg or InboundConfig()
        self._buffer: deque[np.ndarray] = deque(maxlen=self.cfg.max_utterance_frames)
        self.frames_seen = 0
        self.voiced_frames = 0
        self.dropped_frames = 0

    @property
    def buffered_frames(self) -> int:
        return len(self._buffer)

    def push(self, frame: np.ndarray, voiced: bool, *, transcribing: bool) -> np.ndarray | None:
        """Push one decoded frame.

        Returns:
            The utterance PCM when this frame triggers a flush, else None.
        """

        self.frames_seen += 1
        if voiced:
            if len(self._buffer) == self._buffer.maxlen:
                self.dropped_frames += 1
            self._buffer.append(frame)
            self.voiced_frames += 1

        if transcribing:
            if self.dropped_frames and self.dropped_frames % self.cfg.chunk_frames == 1:
                LOGGER.warning(
                    "Utterance buffer full while transcribing; dropped %s oldest frames",
                    self.dropped_frames,
                )
            return None

        buffer_full = len(self._buffer) >= self.cfg.max_utterance_frames
        if self.frames_seen < self.cfg.chunk_frames and not buffer_full:
            return None

        if self.voiced_frames < self.cfg.min_voiced_frames:
            LOGGER.debug(
                "Discarding %s frames with %s voiced", self.frames_seen, self.voiced_frames
            )
            self.reset()
            return None

        utterance = np.concatenate(list(self._buffer))
        self.reset()
        return utterance

    def reset(self) -> None:
        self._buffer.clear()
        self.frames_seen = 0
        self.voiced_frames = 0
        self.dropped_frames = 0
