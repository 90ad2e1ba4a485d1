"""Per-detection pipeline: detect -> reproject -> difference -> emit."""

from __future__ import annotations

import enum
import logging
import time
from typing import Callable, Optional

import numpy as np

from .detection_provider import DetectionProvider, DetectionServiceError
from .frame_graph import FrameGraph, TransformUnavailableError
from .frame_reprojector import FrameReprojector
from .image_source import CameraCalibration
from .odometry import OdometryBuilder, OdometryEstimate, odometry_to_transform
from .odometry_sink import OdometrySink
from .pose_history import PoseHistory
from .velocity_estimator import DegenerateIntervalError, VelocityEstimator

logger = logging.getLogger(__name__)


class GateState(enum.Enum):
    IDLE = "idle"
    AWAITING_DETECTION = "awaiting-detection"


class CycleOutcome(enum.Enum):
    ACCEPTED = "accepted"
    REJECTED_NO_MARKER = "no-marker"
    REJECTED_TRANSFORM_FAILURE = "transform-failure"
    REJECTED_DEGENERATE_INTERVAL = "degenerate-interval"
    REJECTED_DETECTION_FAILURE = "detection-failure"


class DetectionGate:
    """Runs one detection event to completion before the next is accepted.

    PoseHistory is only advanced after an odometry record has been handed to
    the sink, so every rejected cycle leaves it untouched.
    """

    def __init__(
        self,
        detector: DetectionProvider,
        frame_graph: FrameGraph,
        sink: OdometrySink,
        camera_frame: str = "camera_link",
        footprint_frame: str = "footprint",
        bin_frame: str = "bin_link",
        transform_backoff_s: float = 1.0,
        history: Optional[PoseHistory] = None,
        reprojector: Optional[FrameReprojector] = None,
        estimator: Optional[VelocityEstimator] = None,
        builder: Optional[OdometryBuilder] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if bin_frame in (camera_frame, footprint_frame):
            raise ValueError(
                f"bin frame '{bin_frame}' must differ from the camera and footprint frames"
            )
        self.detector = detector
        self.frame_graph = frame_graph
        self.sink = sink
        self.camera_frame = camera_frame
        self.footprint_frame = footprint_frame
        self.bin_frame = bin_frame
        self.transform_backoff_s = float(max(0.0, transform_backoff_s))
        self.history = history or PoseHistory()
        self.reprojector = reprojector or FrameReprojector()
        self.estimator = estimator or VelocityEstimator()
        self.builder = builder or OdometryBuilder()
        self.sleep = sleep

        self.state = GateState.IDLE
        self.last_odometry: Optional[OdometryEstimate] = None

    def process(self, image: np.ndarray, calibration: CameraCalibration) -> CycleOutcome:
        self.state = GateState.AWAITING_DETECTION
        try:
            return self._run_cycle(image, calibration)
        finally:
            self.state = GateState.IDLE

    def _run_cycle(self, image: np.ndarray, calibration: CameraCalibration) -> CycleOutcome:
        try:
            result = self.detector.detect(image, calibration)
        except DetectionServiceError as exc:
            logger.warning("[DETECT] detection service failed: %s", exc)
            return CycleOutcome.REJECTED_DETECTION_FAILURE

        if result.count == 0 or result.marker_pose is None:
            return CycleOutcome.REJECTED_NO_MARKER

        try:
            transform = self.frame_graph.lookup_transform(
                self.camera_frame, self.footprint_frame
            )
        except TransformUnavailableError as exc:
            logger.warning("[TF] %s", exc)
            if self.transform_backoff_s > 0.0:
                self.sleep(self.transform_backoff_s)
            return CycleOutcome.REJECTED_TRANSFORM_FAILURE

        current = self.reprojector.reproject(result.marker_pose, transform)
        previous = self.history.get()
        try:
            velocity = self.estimator.estimate(previous, current)
        except DegenerateIntervalError as exc:
            logger.debug("[ODOM] skipping cycle: %s", exc)
            return CycleOutcome.REJECTED_DEGENERATE_INTERVAL

        if self.history.is_first_sample:
            logger.info(
                "[ODOM] first marker fix (id=%s); twist is relative to the unset pose",
                result.marker_id,
            )

        odom = self.builder.build(current, velocity, self.bin_frame, self.footprint_frame)
        self.sink.publish(odom)
        self.frame_graph.set_transform(odometry_to_transform(odom))
        self.last_odometry = odom
        self.history.advance(current)
        return CycleOutcome.ACCEPTED
