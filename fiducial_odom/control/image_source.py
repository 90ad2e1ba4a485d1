"""Image source interface and camera calibration."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import numpy as np
import yaml


@dataclass(frozen=True)
class CameraCalibration:
    camera_matrix: np.ndarray
    dist_coeffs: np.ndarray
    width: int
    height: int


def approximate_calibration(width: int, height: int) -> CameraCalibration:
    """Pinhole model with f = max(w, h) and no distortion."""
    f = float(max(width, height))
    return CameraCalibration(
        camera_matrix=np.array(
            [[f, 0.0, width * 0.5], [0.0, f, height * 0.5], [0.0, 0.0, 1.0]],
            dtype=np.float64,
        ),
        dist_coeffs=np.zeros(5, dtype=np.float64),
        width=int(width),
        height=int(height),
    )


def _matrix_data(doc: dict[str, Any], key: str, path: Path) -> np.ndarray:
    node = doc.get(key)
    if isinstance(node, dict):
        node = node.get("data")
    if node is None:
        raise ValueError(f"calibration file {path} is missing '{key}'")
    try:
        return np.asarray(node, dtype=np.float64).reshape(-1)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"calibration file {path}: invalid '{key}': {exc}") from exc


def load_calibration(path: str) -> CameraCalibration:
    """Load a ROS camera_info style YAML file.

    Expected keys: image_width, image_height, camera_matrix.data (9 values),
    distortion_coefficients.data.
    """
    p = Path(path)
    if not p.is_file():
        raise ValueError(f"--calibration file not found: {p}")
    try:
        doc = yaml.safe_load(p.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ValueError(f"failed to read calibration file {p}: {exc}") from exc
    if not isinstance(doc, dict):
        raise ValueError(f"calibration file {p} root must be a mapping")

    k = _matrix_data(doc, "camera_matrix", p)
    if k.size != 9:
        raise ValueError(f"calibration file {p}: camera_matrix needs 9 values, got {k.size}")
    dist = _matrix_data(doc, "distortion_coefficients", p)
    try:
        width = int(doc.get("image_width", 0))
        height = int(doc.get("image_height", 0))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"calibration file {p}: invalid image size: {exc}") from exc

    return CameraCalibration(
        camera_matrix=k.reshape(3, 3),
        dist_coeffs=dist,
        width=width,
        height=height,
    )


class ImageSource:
    """Base interface for image sources feeding the detection loop."""

    name: str = "base"

    def run(self, on_frame: Callable[[np.ndarray, CameraCalibration], None]) -> None:
        """Deliver frames one at a time until exhausted or closed."""
        raise NotImplementedError

    def close(self) -> None:
        pass
