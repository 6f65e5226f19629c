from __future__ import annotations

from dataclasses import dataclass

import numpy as np


DEFAULT_MIN_RMS = 250.0


@dataclass(slots=True)
class GateConfig:
    min_rms: float = DEFAULT_MIN_RMS


def frame_rms(frame: np.ndarray) -> float:
    if frame.size == 0:
        return 0.0
    x = frame.astype(np.float32)
    return float(np.sqrt(np.mean(x * x)))


def is_voiced(frame: np.ndarray, min_rms: float = DEFAULT_MIN_RMS) -> bool:
    return frame_rms(frame) >= min_rms


class EnergyGate:
    """A fixed-threshold energy gate for telephone audio.

    There is no noise-floor tracking: a loud line hum above ``min_rms``
    counts as speech.
    """

    def __init__(self, cfg: GateConfig | None = None) -> None:
        self.cfg = cfg or GateConfig()

    def is_voiced(self, frame: np.ndarray) -> bool:
        return is_voiced(frame, self.cfg.min_rms)
