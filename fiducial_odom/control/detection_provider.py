"""Marker detection provider interface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .image_source import CameraCalibration
from .pose import PoseSample


class DetectionServiceError(RuntimeError):
    """Detection could not be performed for this image."""


@dataclass(frozen=True, slots=True)
class DetectionResult:
    count: int
    # Sensor pose relative to the selected marker; set whenever count > 0.
    marker_pose: Optional[PoseSample] = None
    marker_id: Optional[int] = None


class DetectionProvider:
    """Base interface for fiducial marker detectors.

    Implementations may run locally (OpenCV ArUco) or forward to an external
    service; either way a failed call raises DetectionServiceError.
    """

    name: str = "base"

    def detect(self, image: np.ndarray, calibration: CameraCalibration) -> DetectionResult:
        raise NotImplementedError

    def close(self) -> None:
        pass
