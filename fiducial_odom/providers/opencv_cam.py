"""Live camera image source via OpenCV VideoCapture."""

from __future__ import annotations

import logging
import time
from typing import Optional

import cv2
import numpy as np

from ..control.image_source import CameraCalibration, ImageSource, approximate_calibration

logger = logging.getLogger(__name__)


class OpenCvCameraSource(ImageSource):
    """Reads frames from a local camera and hands them to the detection loop.

    Without a calibration file a pinhole model is derived from the first
    frame's size.
    """

    name = "camera"

    def __init__(
        self,
        camera_index: int = 0,
        camera_width: int = 1280,
        camera_height: int = 720,
        calibration: Optional[CameraCalibration] = None,
    ):
        self.camera_index = int(camera_index)
        self.camera_width = int(camera_width)
        self.camera_height = int(camera_height)
        self._calibration = calibration
        self._closed = False
        self._read_failures = 0
        self._size_warned = False

        self.cap = cv2.VideoCapture(self.camera_index, cv2.CAP_DSHOW)
        if not self.cap.isOpened():
            self.cap.release()
            self.cap = cv2.VideoCapture(self.camera_index)
        if not self.cap.isOpened():
            raise RuntimeError(f"Cannot open camera index {self.camera_index}")

        if self.camera_width > 0:
            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.camera_width)
        if self.camera_height > 0:
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.camera_height)

        logger.info(
            "[SOURCE] source=camera (index=%s, size=%sx%s, calibration=%s)",
            self.camera_index,
            self.camera_width,
            self.camera_height,
            "file" if calibration is not None else "approximate",
        )

    def _calibration_for(self, frame: np.ndarray) -> CameraCalibration:
        h, w = frame.shape[:2]
        if self._calibration is None:
            self._calibration = approximate_calibration(w, h)
            return self._calibration
        cal = self._calibration
        if not self._size_warned and cal.width > 0 and (cal.width, cal.height) != (w, h):
            logger.warning(
                "[SOURCE] calibration is for %sx%s but camera delivers %sx%s",
                cal.width,
                cal.height,
                w,
                h,
            )
            self._size_warned = True
        return cal

    def run(self, on_frame) -> None:
        while not self._closed:
            ok, frame = self.cap.read()
            if not ok:
                self._read_failures += 1
                if self._read_failures == 1 or self._read_failures % 100 == 0:
                    logger.warning(
                        "[SOURCE] camera %s read failed (%d so far)",
                        self.camera_index,
                        self._read_failures,
                    )
                time.sleep(0.01)
                continue
            on_frame(frame, self._calibration_for(frame))
        self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.cap.release()
        except (AttributeError, cv2.error):
            pass
