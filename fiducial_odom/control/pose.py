"""Pose and transform data structures for fiducial odometry."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..math3d.quaternion import q_identity


def readonly_array(values, shape) -> np.ndarray:
    """Float64 copy of values with the given shape that cannot be written."""
    a = np.asarray(values, dtype=np.float64).reshape(shape).copy()
    a.setflags(write=False)
    return a


@dataclass(frozen=True, slots=True)
class PoseSample:
    """Timestamped pose.

    stamp:
      Seconds (wall clock).
    position:
      3D translation [x, y, z], meters.
    quaternion:
      Orientation quaternion [w, x, y, z], unit length.
    """

    stamp: float
    position: np.ndarray
    quaternion: np.ndarray

    def __post_init__(self):
        object.__setattr__(self, "position", readonly_array(self.position, 3))
        object.__setattr__(self, "quaternion", readonly_array(self.quaternion, 4))


@dataclass(frozen=True, slots=True)
class Transform:
    """Rigid transform mapping points in child_frame_id into frame_id."""

    frame_id: str
    child_frame_id: str
    stamp: float
    translation: np.ndarray
    rotation: np.ndarray


def unset_pose_sample() -> PoseSample:
    """Sentinel used before any real sample exists."""
    return PoseSample(
        stamp=0.0,
        position=np.zeros(3, dtype=np.float64),
        quaternion=q_identity(),
    )


def identity_transform(frame_id: str, child_frame_id: str, stamp: float = 0.0) -> Transform:
    return Transform(
        frame_id=frame_id,
        child_frame_id=child_frame_id,
        stamp=stamp,
        translation=np.zeros(3, dtype=np.float64),
        rotation=q_identity(),
    )
