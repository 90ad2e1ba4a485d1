"""First-order velocity estimate between two poses.

The relative motion is taken in the previous pose's body frame,
``inverse(previous) * current``, so that the result does not depend on where
the anchor frame sits. The relative rotation is reported as roll/pitch/yaw
deltas, which matches the angular field of the odometry record. Dividing by
the elapsed time is a finite difference, not a filter: it is only accurate
when detections are close together compared to how fast the robot turns.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..math3d.quaternion import q_to_rpy
from ..math3d.transforms import inverse_times
from .pose import PoseSample, readonly_array


class DegenerateIntervalError(ValueError):
    """Raised when the elapsed time between two samples is not positive."""


@dataclass(frozen=True, slots=True)
class VelocityEstimate:
    # units/second
    linear: np.ndarray
    # roll/pitch/yaw rates, rad/second
    angular: np.ndarray

    def __post_init__(self):
        object.__setattr__(self, "linear", readonly_array(self.linear, 3))
        object.__setattr__(self, "angular", readonly_array(self.angular, 3))


class VelocityEstimator:
    def estimate(self, previous: PoseSample, current: PoseSample) -> VelocityEstimate:
        elapsed = float(current.stamp) - float(previous.stamp)
        if not elapsed > 0.0:
            raise DegenerateIntervalError(
                f"non-positive interval between samples: {elapsed:.6f}s "
                f"(previous={previous.stamp:.6f}, current={current.stamp:.6f})"
            )

        translation, rotation = inverse_times(
            previous.position,
            previous.quaternion,
            current.position,
            current.quaternion,
        )
        rpy = q_to_rpy(rotation)
        return VelocityEstimate(linear=translation / elapsed, angular=rpy / elapsed)
