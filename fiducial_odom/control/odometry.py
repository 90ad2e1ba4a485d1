"""Odometry record assembly."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .pose import PoseSample, Transform, readonly_array
from .velocity_estimator import VelocityEstimate

# Hand-tuned diagonal variance for x, y, z, roll, pitch, yaw. Downstream
# fusion is tuned against this exact value.
FIDUCIAL_VARIANCE = 5e-3


def fixed_covariance() -> np.ndarray:
    cov = np.diag(np.full(6, FIDUCIAL_VARIANCE, dtype=np.float64))
    cov.setflags(write=False)
    return cov


@dataclass(frozen=True, slots=True)
class OdometryEstimate:
    stamp: float
    # Bin/world-anchored frame.
    frame_id: str
    # Robot footprint frame.
    child_frame_id: str
    pose: PoseSample
    pose_covariance: np.ndarray
    twist: VelocityEstimate
    twist_covariance: np.ndarray

    def __post_init__(self):
        object.__setattr__(self, "pose_covariance", readonly_array(self.pose_covariance, (6, 6)))
        object.__setattr__(self, "twist_covariance", readonly_array(self.twist_covariance, (6, 6)))


class OdometryBuilder:
    def build(
        self,
        current_pose: PoseSample,
        velocity: VelocityEstimate,
        frame_id: str,
        child_frame_id: str,
    ) -> OdometryEstimate:
        return OdometryEstimate(
            stamp=current_pose.stamp,
            frame_id=frame_id,
            child_frame_id=child_frame_id,
            pose=current_pose,
            pose_covariance=fixed_covariance(),
            twist=velocity,
            twist_covariance=fixed_covariance(),
        )


def odometry_to_transform(odom: OdometryEstimate) -> Transform:
    """Frame broadcast for the emitted pose (bin frame -> footprint frame)."""
    return Transform(
        frame_id=odom.frame_id,
        child_frame_id=odom.child_frame_id,
        stamp=odom.stamp,
        translation=np.asarray(odom.pose.position, dtype=np.float64).copy(),
        rotation=np.asarray(odom.pose.quaternion, dtype=np.float64).copy(),
    )
