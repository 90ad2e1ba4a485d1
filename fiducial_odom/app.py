"""
Fiducial odometry:
- Image source (live OpenCV camera or image folder replay)
- ArUco detection -> camera pose relative to the marker
- Frame graph lookup camera_link <- footprint, reprojection into the bin frame
- First-order differencing against the previous accepted pose
- Odometry record (fixed covariances) -> sink (UDP JSON / log) + frame broadcast
- Display provider (tui) shows the latest record and cycle outcomes

Deps:
  pip install numpy opencv-python PyYAML
"""

from __future__ import annotations

import logging

import numpy as np

from .config import parse_args
from .control.controller import OdometryController
from .control.detection_gate import CycleOutcome, DetectionGate
from .control.display_provider import TuiDisplayProvider
from .control.frame_graph import FrameGraph
from .control.image_source import load_calibration
from .control.odometry_sink import LogOdometrySink, UdpJsonOdometrySink
from .control.pose import Transform
from .math3d.quaternion import rpy_to_q
from .providers.aruco_detector import ArucoDetectionProvider
from .providers.image_folder import ImageFolderSource
from .providers.opencv_cam import OpenCvCameraSource

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_calibration(cfg):
    if not cfg.calibration:
        logger.info("[SOURCE] no --calibration, using approximate pinhole model")
        return None
    calibration = load_calibration(cfg.calibration)
    logger.info(
        "[SOURCE] calibration=%s (%sx%s, fx=%.1f, fy=%.1f)",
        cfg.calibration,
        calibration.width,
        calibration.height,
        calibration.camera_matrix[0, 0],
        calibration.camera_matrix[1, 1],
    )
    return calibration


def build_image_source(cfg, calibration):
    if cfg.image_source == "camera":
        return OpenCvCameraSource(
            camera_index=cfg.camera_index,
            camera_width=cfg.camera_width,
            camera_height=cfg.camera_height,
            calibration=calibration,
        )
    if cfg.image_source == "folder":
        return ImageFolderSource(
            folder=cfg.image_folder,
            fps=cfg.folder_fps,
            loop=cfg.folder_loop,
            calibration=calibration,
        )
    raise RuntimeError(f"Unsupported image source: {cfg.image_source}")


def build_detection_provider(cfg):
    return ArucoDetectionProvider(
        dictionary=cfg.aruco_dict,
        marker_length_m=cfg.marker_length_m,
        marker_id=cfg.marker_id if cfg.marker_id >= 0 else None,
    )


def build_sensor_mount(cfg) -> Transform:
    return Transform(
        frame_id=cfg.footprint_frame,
        child_frame_id=cfg.camera_frame,
        stamp=0.0,
        translation=np.array([cfg.sensor_x, cfg.sensor_y, cfg.sensor_z], dtype=np.float64),
        rotation=rpy_to_q(cfg.sensor_roll, cfg.sensor_pitch, cfg.sensor_yaw),
    )


def build_frame_graph(cfg) -> FrameGraph:
    graph = FrameGraph()
    mount = build_sensor_mount(cfg)
    graph.set_transform(mount, static=True)
    logger.info(
        "[SCENE] static mount %s -> %s xyz=(%.3f, %.3f, %.3f) rpy=(%.3f, %.3f, %.3f)",
        mount.frame_id,
        mount.child_frame_id,
        cfg.sensor_x,
        cfg.sensor_y,
        cfg.sensor_z,
        cfg.sensor_roll,
        cfg.sensor_pitch,
        cfg.sensor_yaw,
    )
    return graph


def build_odometry_sink(cfg):
    if cfg.odom_sink == "udp":
        return UdpJsonOdometrySink(host=cfg.odom_host, port=cfg.odom_port)
    if cfg.odom_sink == "log":
        return LogOdometrySink()
    raise RuntimeError(f"Unsupported odometry sink: {cfg.odom_sink}")


def build_display_provider(cfg):
    if cfg.display_hz <= 0.0:
        return None
    return TuiDisplayProvider(cli_output=cfg.cli_output)


def main(argv=None):
    cfg = parse_args(argv)
    configure_logging(cfg.log_level)

    calibration = build_calibration(cfg)
    detector = build_detection_provider(cfg)
    frame_graph = build_frame_graph(cfg)
    sink = build_odometry_sink(cfg)
    display_provider = build_display_provider(cfg)

    gate = DetectionGate(
        detector=detector,
        frame_graph=frame_graph,
        sink=sink,
        camera_frame=cfg.camera_frame,
        footprint_frame=cfg.footprint_frame,
        bin_frame=cfg.bin_frame,
        transform_backoff_s=cfg.transform_backoff_s,
    )
    controller = OdometryController(
        gate=gate,
        display_provider=display_provider,
        display_hz=cfg.display_hz,
    )
    logger.info(
        "[SCENE] odometry %s -> %s (odometry frame=%s)",
        cfg.bin_frame,
        cfg.footprint_frame,
        cfg.odometry_frame,
    )

    try:
        source = build_image_source(cfg, calibration)
        try:
            source.run(controller.tick)
        except KeyboardInterrupt:
            logger.info("[SCENE] interrupted, shutting down")
        finally:
            source.close()
    finally:
        try:
            sink.close()
        finally:
            detector.close()
            if display_provider is not None:
                display_provider.close()

    logger.info(
        "[ODOM] done: frames=%d accepted=%d",
        controller.frames,
        controller.outcome_counts[CycleOutcome.ACCEPTED],
    )


if __name__ == "__main__":
    main()
