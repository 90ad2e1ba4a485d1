"""Quaternion utilities for right-handed coordinates.

Quaternions are numpy arrays ordered [w, x, y, z]. Euler angles follow the
ROS/tf2 convention: fixed-axis roll (x), pitch (y), yaw (z), composed as
R = Rz(yaw) * Ry(pitch) * Rx(roll).
"""

from __future__ import annotations

import math

import numpy as np

IDENTITY_Q = np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float64)


def q_identity() -> np.ndarray:
    return IDENTITY_Q.copy()


def q_normalize(q: np.ndarray) -> np.ndarray:
    q = np.asarray(q, dtype=np.float64)
    n = float(np.linalg.norm(q))
    if n < 1e-12:
        return q_identity()
    return q / n


def q_is_zero(q: np.ndarray) -> bool:
    """True only for the exact all-zero quaternion (an unset orientation)."""
    return not bool(np.any(np.asarray(q, dtype=np.float64)))


def q_conj(q: np.ndarray) -> np.ndarray:
    return np.array([q[0], -q[1], -q[2], -q[3]], dtype=np.float64)


def q_mul(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    aw, ax, ay, az = a
    bw, bx, by, bz = b
    return np.array(
        [
            aw * bw - ax * bx - ay * by - az * bz,
            aw * bx + ax * bw + ay * bz - az * by,
            aw * by - ax * bz + ay * bw + az * bx,
            aw * bz + ax * by - ay * bx + az * bw,
        ],
        dtype=np.float64,
    )


def q_rotate_vec(q: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Rotate vector v by unit quaternion q: v' = q*(0,v)*q^{-1}."""
    q = q_normalize(q)
    vq = np.array([0.0, float(v[0]), float(v[1]), float(v[2])], dtype=np.float64)
    return q_mul(q_mul(q, vq), q_conj(q))[1:]


def axis_angle_to_q(axis: np.ndarray, angle_rad: float) -> np.ndarray:
    axis = np.asarray(axis, dtype=np.float64)
    axis = axis / (np.linalg.norm(axis) + 1e-12)
    s = math.sin(angle_rad / 2.0)
    return q_normalize(
        np.array(
            [math.cos(angle_rad / 2.0), axis[0] * s, axis[1] * s, axis[2] * s],
            dtype=np.float64,
        )
    )


def rpy_to_q(roll: float, pitch: float, yaw: float) -> np.ndarray:
    """Roll/pitch/yaw in radians to quaternion, q = q_yaw * q_pitch * q_roll."""
    q_roll = axis_angle_to_q(np.array([1.0, 0.0, 0.0]), roll)
    q_pitch = axis_angle_to_q(np.array([0.0, 1.0, 0.0]), pitch)
    q_yaw = axis_angle_to_q(np.array([0.0, 0.0, 1.0]), yaw)
    return q_normalize(q_mul(q_mul(q_yaw, q_pitch), q_roll))


def q_to_rotmat(q: np.ndarray) -> np.ndarray:
    w, x, y, z = q_normalize(q)
    return np.array(
        [
            [1.0 - 2.0 * (y * y + z * z), 2.0 * (x * y - w * z), 2.0 * (x * z + w * y)],
            [2.0 * (x * y + w * z), 1.0 - 2.0 * (x * x + z * z), 2.0 * (y * z - w * x)],
            [2.0 * (x * z - w * y), 2.0 * (y * z + w * x), 1.0 - 2.0 * (x * x + y * y)],
        ],
        dtype=np.float64,
    )


def q_to_rpy(q: np.ndarray) -> np.ndarray:
    """Quaternion to [roll, pitch, yaw] in radians.

    Mirrors tf2's Matrix3x3::getRPY: at pitch = +-pi/2 yaw is pinned to 0 and
    the remaining rotation is reported as roll.
    """
    R = q_to_rotmat(q)
    r20 = float(np.clip(R[2, 0], -1.0, 1.0))
    if abs(r20) >= 1.0 - 1e-12:
        yaw = 0.0
        if r20 < 0.0:
            pitch = math.pi / 2.0
            roll = math.atan2(R[0, 1], R[0, 2])
        else:
            pitch = -math.pi / 2.0
            roll = math.atan2(-R[0, 1], -R[0, 2])
    else:
        pitch = math.asin(-r20)
        roll = math.atan2(R[2, 1], R[2, 2])
        yaw = math.atan2(R[1, 0], R[0, 0])
    return np.array([roll, pitch, yaw], dtype=np.float64)


def rotmat_to_q(R: np.ndarray) -> np.ndarray:
    """Convert 3x3 rotation matrix to unit quaternion [w, x, y, z]."""
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError(f"Expected 3x3 rotation matrix, got {R.shape}")

    trace = float(R[0, 0] + R[1, 1] + R[2, 2])
    if trace > 0.0:
        s = math.sqrt(trace + 1.0) * 2.0
        qw = 0.25 * s
        qx = (R[2, 1] - R[1, 2]) / s
        qy = (R[0, 2] - R[2, 0]) / s
        qz = (R[1, 0] - R[0, 1]) / s
    elif R[0, 0] > R[1, 1] and R[0, 0] > R[2, 2]:
        s = math.sqrt(1.0 + R[0, 0] - R[1, 1] - R[2, 2]) * 2.0
        qw = (R[2, 1] - R[1, 2]) / s
        qx = 0.25 * s
        qy = (R[0, 1] + R[1, 0]) / s
        qz = (R[0, 2] + R[2, 0]) / s
    elif R[1, 1] > R[2, 2]:
        s = math.sqrt(1.0 + R[1, 1] - R[0, 0] - R[2, 2]) * 2.0
        qw = (R[0, 2] - R[2, 0]) / s
        qx = (R[0, 1] + R[1, 0]) / s
        qy = 0.25 * s
        qz = (R[1, 2] + R[2, 1]) / s
    else:
        s = math.sqrt(1.0 + R[2, 2] - R[0, 0] - R[1, 1]) * 2.0
        qw = (R[1, 0] - R[0, 1]) / s
        qx = (R[0, 2] + R[2, 0]) / s
        qy = (R[1, 2] + R[2, 1]) / s
        qz = 0.25 * s

    return q_normalize(np.array([qw, qx, qy, qz], dtype=np.float64))
