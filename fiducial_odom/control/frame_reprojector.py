"""Re-express a marker-relative pose in the robot footprint frame."""

from __future__ import annotations

import time
from typing import Callable

import numpy as np

from ..math3d.transforms import compose
from .pose import PoseSample, Transform


class FrameReprojector:
    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock

    def reproject(self, marker_pose: PoseSample, transform: Transform) -> PoseSample:
        position, quaternion = compose(
            transform.translation,
            transform.rotation,
            marker_pose.position,
            marker_pose.quaternion,
        )
        # Camera-to-footprint mounting convention needs X mirrored after the
        # transform. Not configurable.
        position = np.array([-position[0], position[1], position[2]], dtype=np.float64)
        return PoseSample(stamp=float(self.clock()), position=position, quaternion=quaternion)
