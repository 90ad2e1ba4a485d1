"""Detection provider and image source implementations."""

from .aruco_detector import ArucoDetectionProvider
from .image_folder import ImageFolderSource
from .opencv_cam import OpenCvCameraSource

__all__ = [
    "ArucoDetectionProvider",
    "ImageFolderSource",
    "OpenCvCameraSource",
]
