"""ArUco marker detection provider (OpenCV >= 4.7)."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import cv2
import numpy as np

from ..control.detection_provider import (
    DetectionProvider,
    DetectionResult,
    DetectionServiceError,
)
from ..control.image_source import CameraCalibration
from ..control.pose import PoseSample
from ..math3d.quaternion import rotmat_to_q
from ..math3d.transforms import invert

logger = logging.getLogger(__name__)


def _marker_object_points(length_m: float) -> np.ndarray:
    # Corner order required by SOLVEPNP_IPPE_SQUARE, matching ArUco's
    # top-left, top-right, bottom-right, bottom-left.
    h = 0.5 * float(length_m)
    return np.array(
        [[-h, h, 0.0], [h, h, 0.0], [h, -h, 0.0], [-h, -h, 0.0]],
        dtype=np.float64,
    )


def resolve_dictionary(name: str):
    dict_id = getattr(cv2.aruco, str(name), None)
    if not str(name).startswith("DICT_") or not isinstance(dict_id, int):
        raise ValueError(f"unknown ArUco dictionary: {name!r}")
    return cv2.aruco.getPredefinedDictionary(dict_id)


class ArucoDetectionProvider(DetectionProvider):
    """Detects square ArUco markers and estimates the camera pose from one.

    count is the number of markers (matching marker_id when set). When more
    than one is visible the nearest is used; they are never fused. The
    reported pose is the camera pose expressed relative to that marker.
    """

    name = "aruco"

    def __init__(
        self,
        dictionary: str = "DICT_4X4_50",
        marker_length_m: float = 0.2,
        marker_id: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        if marker_length_m <= 0.0:
            raise ValueError(f"marker length must be > 0, got {marker_length_m}")
        self.dictionary_name = str(dictionary)
        self.marker_length_m = float(marker_length_m)
        self.marker_id = None if marker_id is None or marker_id < 0 else int(marker_id)
        self.clock = clock

        self._object_points = _marker_object_points(self.marker_length_m)
        self._detector = cv2.aruco.ArucoDetector(
            resolve_dictionary(self.dictionary_name),
            cv2.aruco.DetectorParameters(),
        )

        logger.info(
            "[DETECT] provider=aruco (dict=%s, marker_length=%.3fm, marker_id=%s)",
            self.dictionary_name,
            self.marker_length_m,
            "any" if self.marker_id is None else self.marker_id,
        )

    def _solve(self, corners: np.ndarray, calibration: CameraCalibration):
        ok, rvec, tvec = cv2.solvePnP(
            self._object_points,
            np.asarray(corners, dtype=np.float64).reshape(4, 2),
            calibration.camera_matrix,
            calibration.dist_coeffs,
            flags=cv2.SOLVEPNP_IPPE_SQUARE,
        )
        if not ok:
            return None
        return rvec, np.asarray(tvec, dtype=np.float64).reshape(3)

    def detect(self, image: np.ndarray, calibration: CameraCalibration) -> DetectionResult:
        if image is None or image.size == 0:
            raise DetectionServiceError("empty image")
        stamp = float(self.clock())
        try:
            gray = image if image.ndim == 2 else cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
            corners, ids, _ = self._detector.detectMarkers(gray)
        except cv2.error as exc:
            raise DetectionServiceError(f"ArUco detection failed: {exc}") from exc

        if ids is None or len(ids) == 0:
            return DetectionResult(count=0)

        candidates = [
            (int(marker_id), marker_corners)
            for marker_id, marker_corners in zip(np.asarray(ids).reshape(-1), corners)
            if self.marker_id is None or int(marker_id) == self.marker_id
        ]
        if not candidates:
            return DetectionResult(count=0)

        best = None
        for marker_id, marker_corners in candidates:
            try:
                solved = self._solve(marker_corners, calibration)
            except cv2.error as exc:
                raise DetectionServiceError(f"marker pose estimation failed: {exc}") from exc
            if solved is None:
                continue
            rvec, tvec = solved
            distance = float(np.linalg.norm(tvec))
            if best is None or distance < best[0]:
                best = (distance, marker_id, rvec, tvec)

        if best is None:
            raise DetectionServiceError(
                f"pose estimation failed for all {len(candidates)} detected marker(s)"
            )

        _, marker_id, rvec, tvec = best
        R_cam_marker, _ = cv2.Rodrigues(rvec)
        # solvePnP gives the marker in the camera frame; report the camera
        # relative to the marker.
        position, quaternion = invert(tvec, rotmat_to_q(R_cam_marker))
        return DetectionResult(
            count=len(candidates),
            marker_pose=PoseSample(stamp=stamp, position=position, quaternion=quaternion),
            marker_id=marker_id,
        )
