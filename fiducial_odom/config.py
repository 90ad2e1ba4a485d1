"""CLI config and defaults."""

from __future__ import annotations

import argparse
import math
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml


@dataclass(frozen=True)
class AppConfig:
    camera_frame: str = "camera_link"
    footprint_frame: str = "footprint"
    bin_frame: str = "bin_link"
    odometry_frame: str = "odom"
    image_source: str = "camera"
    camera_index: int = 0
    camera_width: int = 1280
    camera_height: int = 720
    image_folder: str = ""
    folder_fps: float = 10.0
    folder_loop: bool = False
    calibration: str = ""
    aruco_dict: str = "DICT_4X4_50"
    marker_length_m: float = 0.2
    marker_id: int = -1
    sensor_x: float = 0.0
    sensor_y: float = 0.0
    sensor_z: float = 0.0
    sensor_roll: float = 0.0
    sensor_pitch: float = 0.0
    sensor_yaw: float = 0.0
    transform_backoff_s: float = 1.0
    odom_sink: str = "udp"
    odom_host: str = "127.0.0.1"
    odom_port: int = 24568
    display_hz: float = 5.0
    cli_output: str = "live"
    log_level: str = "info"


_APP_CONFIG_FIELDS = {f.name for f in fields(AppConfig)}
_BOOL_FIELDS = {"folder_loop"}
_INT_FIELDS = {
    "camera_index",
    "camera_width",
    "camera_height",
    "marker_id",
    "odom_port",
}
_FLOAT_FIELDS = {
    "folder_fps",
    "marker_length_m",
    "sensor_x",
    "sensor_y",
    "sensor_z",
    "sensor_roll",
    "sensor_pitch",
    "sensor_yaw",
    "transform_backoff_s",
    "display_hz",
}
_STRING_FIELDS = {
    "camera_frame",
    "footprint_frame",
    "bin_frame",
    "odometry_frame",
    "image_source",
    "image_folder",
    "calibration",
    "aruco_dict",
    "odom_sink",
    "odom_host",
    "cli_output",
    "log_level",
}
_FRAME_FIELDS = ("camera_frame", "footprint_frame", "bin_frame", "odometry_frame")


def _parse_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        s = value.strip().lower()
        if s in {"1", "true", "yes", "on"}:
            return True
        if s in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"config key '{key}' expects a bool, got {value!r}")


def _coerce_config_value(key: str, value: Any) -> Any:
    try:
        if key in _BOOL_FIELDS:
            return _parse_bool(value, key)
        if key in _INT_FIELDS:
            if isinstance(value, bool):
                raise TypeError("bool is not an int")
            return int(value)
        if key in _FLOAT_FIELDS:
            if isinstance(value, bool):
                raise TypeError("bool is not a float")
            return float(value)
        if key in _STRING_FIELDS:
            return "" if value is None else str(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid value for config key '{key}': {value!r}") from exc
    raise ValueError(f"unsupported config key '{key}'")


def _normalize_config_key(raw_key: Any) -> str:
    if not isinstance(raw_key, str):
        raise ValueError(f"config key must be string, got {type(raw_key).__name__}")
    key = raw_key.strip().replace("-", "_")
    if not key:
        raise ValueError("config key cannot be empty")
    return key


def _load_yaml_config(path: str) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise ValueError(f"--config file not found: {p}")
    if not p.is_file():
        raise ValueError(f"--config must point to a file: {p}")

    try:
        text = p.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"failed to read --config file {p}: {exc}") from exc
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"failed to parse YAML config {p}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"--config root must be a mapping/object, got {type(loaded).__name__}")

    normalized: dict[str, Any] = {}
    for raw_key, raw_value in loaded.items():
        key = _normalize_config_key(raw_key)
        if key not in _APP_CONFIG_FIELDS:
            raise ValueError(f"unknown config key in {p}: {raw_key!r}")
        normalized[key] = _coerce_config_value(key, raw_value)
    return normalized


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Relative odometry from fiducial marker detections."
    )
    ap.add_argument(
        "--config",
        type=str,
        default="",
        help="YAML config file path. CLI args override YAML values.",
    )

    ap.add_argument(
        "--camera-frame",
        type=str,
        default="camera_link",
        help="Reference frame of the camera.",
    )
    ap.add_argument(
        "--footprint-frame",
        type=str,
        default="footprint",
        help="Reference frame of the robot footprint (odometry child frame).",
    )
    ap.add_argument(
        "--bin-frame",
        type=str,
        default="bin_link",
        help="Reference frame anchored at the marker/bin (odometry frame_id).",
    )
    ap.add_argument(
        "--odometry-frame",
        type=str,
        default="odom",
        help="Reference frame of odom.",
    )

    ap.add_argument(
        "--image-source",
        choices=["camera", "folder"],
        default="camera",
        help="Image input: live OpenCV camera or offline image folder replay.",
    )
    ap.add_argument(
        "--camera-index",
        type=int,
        default=0,
        help="OpenCV camera index for --image-source camera.",
    )
    ap.add_argument(
        "--camera-width",
        type=int,
        default=1280,
        help="Requested camera frame width.",
    )
    ap.add_argument(
        "--camera-height",
        type=int,
        default=720,
        help="Requested camera frame height.",
    )
    ap.add_argument(
        "--image-folder",
        type=str,
        default="",
        help="Folder of images for --image-source folder.",
    )
    ap.add_argument(
        "--folder-fps",
        type=float,
        default=10.0,
        help="Replay rate for --image-source folder.",
    )
    ap.add_argument("--folder-loop", action="store_true", help="Loop folder replay.")
    ap.add_argument(
        "--calibration",
        type=str,
        default="",
        help="camera_info style YAML calibration. Empty = approximate pinhole.",
    )

    ap.add_argument(
        "--aruco-dict",
        type=str,
        default="DICT_4X4_50",
        help="OpenCV ArUco predefined dictionary name.",
    )
    ap.add_argument(
        "--marker-length-m",
        type=float,
        default=0.2,
        help="Printed marker side length in meters.",
    )
    ap.add_argument(
        "--marker-id",
        type=int,
        default=-1,
        help="Only use this marker id (-1 = any).",
    )

    ap.add_argument("--sensor-x", type=float, default=0.0, help="Camera x in footprint frame (m).")
    ap.add_argument("--sensor-y", type=float, default=0.0, help="Camera y in footprint frame (m).")
    ap.add_argument("--sensor-z", type=float, default=0.0, help="Camera z in footprint frame (m).")
    ap.add_argument("--sensor-roll", type=float, default=0.0, help="Camera roll (rad).")
    ap.add_argument("--sensor-pitch", type=float, default=0.0, help="Camera pitch (rad).")
    ap.add_argument("--sensor-yaw", type=float, default=0.0, help="Camera yaw (rad).")
    ap.add_argument(
        "--transform-backoff-s",
        type=float,
        default=1.0,
        help="Wait after a failed transform lookup, in seconds.",
    )

    ap.add_argument(
        "--odom-sink",
        choices=["udp", "log"],
        default="udp",
        help="Where odometry goes: UDP JSON datagrams or log lines.",
    )
    ap.add_argument(
        "--odom-host",
        type=str,
        default="127.0.0.1",
        help="Host for UDP odometry datagrams.",
    )
    ap.add_argument(
        "--odom-port",
        type=int,
        default=24568,
        help="Port for UDP odometry datagrams.",
    )

    ap.add_argument(
        "--display-hz",
        type=float,
        default=5.0,
        help="Status display refresh rate in Hz (0 disables display updates).",
    )
    ap.add_argument(
        "--cli-output",
        choices=["live", "scroll"],
        default="live",
        help="Status output mode: in-place live panel or scrolling logs.",
    )
    ap.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default="info",
        help="Global log level.",
    )

    return ap


def validate_config(cfg: AppConfig) -> None:
    for name in _FRAME_FIELDS:
        if not str(getattr(cfg, name)).strip():
            raise ValueError(f"--{name.replace('_', '-')} must be non-empty")
    if cfg.camera_frame == cfg.footprint_frame:
        raise ValueError("--camera-frame and --footprint-frame must differ")
    if cfg.bin_frame == cfg.footprint_frame:
        raise ValueError("--bin-frame and --footprint-frame must differ")
    if cfg.bin_frame == cfg.camera_frame:
        raise ValueError("--bin-frame and --camera-frame must differ")
    if cfg.image_source not in {"camera", "folder"}:
        raise ValueError(f"--image-source must be camera|folder, got {cfg.image_source}")
    if cfg.camera_index < 0:
        raise ValueError(f"--camera-index must be >= 0, got {cfg.camera_index}")
    if cfg.camera_width < 0:
        raise ValueError(f"--camera-width must be >= 0, got {cfg.camera_width}")
    if cfg.camera_height < 0:
        raise ValueError(f"--camera-height must be >= 0, got {cfg.camera_height}")
    if cfg.image_source == "folder" and not cfg.image_folder.strip():
        raise ValueError("--image-folder must be provided for --image-source folder")
    if cfg.folder_fps <= 0.0:
        raise ValueError(f"--folder-fps must be > 0, got {cfg.folder_fps}")
    if not cfg.aruco_dict.startswith("DICT_"):
        raise ValueError(f"--aruco-dict must name a DICT_* dictionary, got {cfg.aruco_dict}")
    if not (math.isfinite(cfg.marker_length_m) and cfg.marker_length_m > 0.0):
        raise ValueError(f"--marker-length-m must be > 0, got {cfg.marker_length_m}")
    if cfg.marker_id < -1:
        raise ValueError(f"--marker-id must be >= -1, got {cfg.marker_id}")
    mount = (
        cfg.sensor_x,
        cfg.sensor_y,
        cfg.sensor_z,
        cfg.sensor_roll,
        cfg.sensor_pitch,
        cfg.sensor_yaw,
    )
    if not all(math.isfinite(v) for v in mount):
        raise ValueError("--sensor-x/y/z/roll/pitch/yaw must be finite numbers")
    if cfg.transform_backoff_s < 0.0:
        raise ValueError(
            f"--transform-backoff-s must be >= 0, got {cfg.transform_backoff_s}"
        )
    if cfg.odom_sink not in {"udp", "log"}:
        raise ValueError(f"--odom-sink must be udp|log, got {cfg.odom_sink}")
    if not cfg.odom_host.strip():
        raise ValueError("--odom-host must be non-empty")
    if not (1 <= cfg.odom_port <= 65535):
        raise ValueError(f"--odom-port must be in [1,65535], got {cfg.odom_port}")
    if cfg.display_hz < 0.0:
        raise ValueError(f"--display-hz must be >= 0, got {cfg.display_hz}")
    if cfg.cli_output not in {"live", "scroll"}:
        raise ValueError(f"--cli-output must be live|scroll, got {cfg.cli_output}")
    if cfg.log_level not in {"debug", "info", "warning", "error"}:
        raise ValueError(
            f"--log-level must be one of debug|info|warning|error, got {cfg.log_level}"
        )


def parse_args(argv=None) -> AppConfig:
    bootstrap = argparse.ArgumentParser(add_help=False)
    bootstrap.add_argument("--config", type=str, default="")
    bootstrap_ns, _ = bootstrap.parse_known_args(argv)

    yaml_cfg: dict[str, Any] = {}
    yaml_error: Optional[str] = None
    if bootstrap_ns.config:
        try:
            yaml_cfg = _load_yaml_config(bootstrap_ns.config)
        except ValueError as exc:
            yaml_error = str(exc)

    ap = build_arg_parser()
    if yaml_error is not None:
        ap.error(yaml_error)
    if yaml_cfg:
        ap.set_defaults(**yaml_cfg)
    args = ap.parse_args(argv)

    cfg = AppConfig(**{name: getattr(args, name) for name in _APP_CONFIG_FIELDS})
    try:
        validate_config(cfg)
    except ValueError as exc:
        ap.error(str(exc))
    return cfg
