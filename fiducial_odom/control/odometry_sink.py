"""Odometry sinks (fire-and-forget publishing).

The UDP sink sends one JSON datagram per odometry record:
{
  "stamp": 1700000000.25,
  "frame_id": "bin_link",
  "child_frame_id": "footprint",
  "pose": {"position_m": [x, y, z], "quaternion_wxyz": [w, x, y, z],
           "covariance": [36 values, row major]},
  "twist": {"linear": [vx, vy, vz], "angular": [wr, wp, wy],
            "covariance": [36 values, row major]}
}
"""

from __future__ import annotations

import json
import logging
import socket

import numpy as np

from .odometry import OdometryEstimate

logger = logging.getLogger(__name__)


def _floats(a: np.ndarray) -> list[float]:
    return [float(v) for v in np.asarray(a, dtype=np.float64).reshape(-1)]


def odometry_to_payload(odom: OdometryEstimate) -> dict:
    return {
        "stamp": float(odom.stamp),
        "frame_id": odom.frame_id,
        "child_frame_id": odom.child_frame_id,
        "pose": {
            "position_m": _floats(odom.pose.position),
            "quaternion_wxyz": _floats(odom.pose.quaternion),
            "covariance": _floats(odom.pose_covariance),
        },
        "twist": {
            "linear": _floats(odom.twist.linear),
            "angular": _floats(odom.twist.angular),
            "covariance": _floats(odom.twist_covariance),
        },
    }


class OdometrySink:
    """Base interface for odometry consumers."""

    name: str = "base"

    def publish(self, odom: OdometryEstimate) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class UdpJsonOdometrySink(OdometrySink):
    """Sends odometry as JSON datagrams. No acknowledgement is expected."""

    name = "udp"

    def __init__(self, host: str, port: int):
        self.host = str(host)
        self.port = int(port)
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._sent = 0
        logger.info("[ODOM] sink=udp (target=%s:%s)", self.host, self.port)

    def publish(self, odom: OdometryEstimate) -> None:
        data = json.dumps(odometry_to_payload(odom)).encode("utf-8")
        try:
            self.sock.sendto(data, (self.host, self.port))
        except OSError as exc:
            logger.warning(
                "[ODOM] failed to send odometry to %s:%s: %s", self.host, self.port, exc
            )
            return
        self._sent += 1
        if self._sent == 1:
            logger.info("[ODOM] first odometry datagram sent to %s:%s", self.host, self.port)

    def close(self) -> None:
        try:
            self.sock.close()
        except OSError:
            pass


class LogOdometrySink(OdometrySink):
    """Logs each record on one line."""

    name = "log"

    def publish(self, odom: OdometryEstimate) -> None:
        p = odom.pose.position
        v = odom.twist.linear
        w = odom.twist.angular
        logger.info(
            "[ODOM] %s->%s t=%.3f xyz=(%.3f, %.3f, %.3f) v=(%.3f, %.3f, %.3f) "
            "rpy_rate=(%.3f, %.3f, %.3f)",
            odom.frame_id,
            odom.child_frame_id,
            odom.stamp,
            p[0],
            p[1],
            p[2],
            v[0],
            v[1],
            v[2],
            w[0],
            w[1],
            w[2],
        )
