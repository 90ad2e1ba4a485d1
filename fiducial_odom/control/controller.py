"""Control plane driving the detection gate once per image."""

from __future__ import annotations

import time
from typing import Callable, Optional

import numpy as np

from .detection_gate import CycleOutcome, DetectionGate
from .display_provider import DisplayFrame, DisplayProvider
from .image_source import CameraCalibration


class OdometryController:
    def __init__(
        self,
        gate: DetectionGate,
        display_provider: Optional[DisplayProvider] = None,
        display_hz: float = 5.0,
        clock: Callable[[], float] = time.time,
    ):
        self.gate = gate
        self.display_provider = display_provider
        self.clock = clock
        self.display_interval = (1.0 / display_hz) if display_hz > 0.0 else 0.0
        self.last_display_t = 0.0
        self.frames = 0
        self.outcome_counts: dict[CycleOutcome, int] = {o: 0 for o in CycleOutcome}

    def tick(self, image: np.ndarray, calibration: CameraCalibration) -> CycleOutcome:
        outcome = self.gate.process(image, calibration)
        self.frames += 1
        self.outcome_counts[outcome] += 1

        if self.display_provider is None or self.display_interval <= 0.0:
            return outcome
        now = self.clock()
        if (now - self.last_display_t) >= self.display_interval:
            self.display_provider.update(
                DisplayFrame(
                    outcome=outcome,
                    odometry=self.gate.last_odometry,
                    outcome_counts=dict(self.outcome_counts),
                    frames=self.frames,
                )
            )
            self.last_display_t = now
        return outcome
