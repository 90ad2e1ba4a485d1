"""Offline replay of an image folder at a fixed frame rate."""

from __future__ import annotations

import glob
import logging
import os
import time
from typing import Callable, List, Optional

import cv2

from ..control.image_source import CameraCalibration, ImageSource, approximate_calibration

logger = logging.getLogger(__name__)


def collect_images(image_dir: str) -> List[str]:
    patterns = ("*.png", "*.jpg", "*.jpeg", "*.bmp")
    files: set[str] = set()
    for pattern in patterns:
        files.update(glob.glob(os.path.join(image_dir, pattern)))
        files.update(glob.glob(os.path.join(image_dir, pattern.upper())))
    return sorted(files)


class ImageFolderSource(ImageSource):
    name = "folder"

    def __init__(
        self,
        folder: str,
        fps: float = 10.0,
        loop: bool = False,
        calibration: Optional[CameraCalibration] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if fps <= 0.0:
            raise ValueError(f"fps must be > 0, got {fps}")
        self.folder = str(folder)
        self.period_s = 1.0 / float(fps)
        self.loop = bool(loop)
        self.sleep = sleep
        self._calibration = calibration
        self._closed = False

        self.files = collect_images(self.folder)
        if not self.files:
            raise ValueError(f"no images found in {self.folder}")

        logger.info(
            "[SOURCE] source=folder (path=%s, images=%d, fps=%.2f, loop=%s)",
            self.folder,
            len(self.files),
            fps,
            self.loop,
        )

    def run(self, on_frame) -> None:
        while not self._closed:
            delivered = 0
            for path in self.files:
                if self._closed:
                    break
                img = cv2.imread(path)
                if img is None:
                    logger.warning("[SOURCE] cannot read image %s, skipping", path)
                    continue
                if self._calibration is None:
                    h, w = img.shape[:2]
                    self._calibration = approximate_calibration(w, h)
                on_frame(img, self._calibration)
                delivered += 1
                self.sleep(self.period_s)
            if not self.loop:
                break
            if delivered == 0 and not self._closed:
                logger.error("[SOURCE] no readable images in %s, stopping replay", self.folder)
                break
        self.close()

    def close(self) -> None:
        self._closed = True
