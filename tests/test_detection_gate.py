import logging

import numpy as np
import pytest

from fiducial_odom.control.detection_gate import CycleOutcome, DetectionGate, GateState
from fiducial_odom.control.detection_provider import (
    DetectionProvider,
    DetectionResult,
    DetectionServiceError,
)
from fiducial_odom.control.frame_graph import FrameGraph, TransformUnavailableError
from fiducial_odom.control.frame_reprojector import FrameReprojector
from fiducial_odom.control.image_source import approximate_calibration
from fiducial_odom.control.odometry_sink import OdometrySink
from fiducial_odom.control.pose import PoseSample, identity_transform
from fiducial_odom.math3d.quaternion import q_identity

IMAGE = np.zeros((4, 4, 3), dtype=np.uint8)
CAL = approximate_calibration(4, 4)


class _ScriptedDetector(DetectionProvider):
    def __init__(self, results):
        self.results = list(results)

    def detect(self, image, calibration):
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class _RecordingSink(OdometrySink):
    def __init__(self):
        self.published = []

    def publish(self, odom):
        self.published.append(odom)


class _BrokenFrameGraph(FrameGraph):
    def lookup_transform(self, target_frame, source_frame, stamp=None):
        raise TransformUnavailableError('"camera_link" passed to lookup_transform argument does not exist')


def _seen(x):
    return DetectionResult(
        count=1,
        marker_pose=PoseSample(
            stamp=0.0, position=np.array([x, 0.0, 0.0]), quaternion=q_identity()
        ),
        marker_id=0,
    )


def _mounted_graph():
    graph = FrameGraph()
    graph.set_transform(identity_transform("footprint", "camera_link"), static=True)
    return graph


class _Clock:
    def __init__(self, *values):
        self.values = list(values)

    def __call__(self):
        return self.values.pop(0)


def _gate(detector, graph=None, clock=None, sleeps=None):
    sink = _RecordingSink()
    gate = DetectionGate(
        detector=detector,
        frame_graph=graph or _mounted_graph(),
        sink=sink,
        reprojector=FrameReprojector(clock=clock or _Clock(10.0, 12.0)),
        sleep=(sleeps.append if sleeps is not None else (lambda s: None)),
    )
    return gate, sink


def test_no_marker_emits_nothing():
    gate, sink = _gate(_ScriptedDetector([DetectionResult(count=0)]))
    assert gate.process(IMAGE, CAL) is CycleOutcome.REJECTED_NO_MARKER
    assert sink.published == []
    assert gate.history.is_first_sample
    assert gate.state is GateState.IDLE


def test_transform_failure_warns_and_backs_off(caplog):
    sleeps = []
    gate, sink = _gate(_ScriptedDetector([_seen(1.0)]), graph=_BrokenFrameGraph(), sleeps=sleeps)
    with caplog.at_level(logging.WARNING):
        outcome = gate.process(IMAGE, CAL)
    assert outcome is CycleOutcome.REJECTED_TRANSFORM_FAILURE
    assert sink.published == []
    assert sleeps == [1.0]
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "does not exist" in warnings[0].getMessage()
    assert gate.history.is_first_sample


def test_detection_failure_is_recoverable(caplog):
    gate, sink = _gate(_ScriptedDetector([DetectionServiceError("timeout"), _seen(1.0)]))
    with caplog.at_level(logging.WARNING):
        assert gate.process(IMAGE, CAL) is CycleOutcome.REJECTED_DETECTION_FAILURE
    assert "timeout" in caplog.text
    assert gate.process(IMAGE, CAL) is CycleOutcome.ACCEPTED
    assert len(sink.published) == 1


def test_two_detections_produce_forward_velocity():
    gate, sink = _gate(_ScriptedDetector([_seen(-1.0), _seen(-3.0)]))
    assert gate.process(IMAGE, CAL) is CycleOutcome.ACCEPTED
    assert gate.process(IMAGE, CAL) is CycleOutcome.ACCEPTED
    assert len(sink.published) == 2

    second = sink.published[1]
    # marker x is mirrored by the reprojection: -1 -> 1, -3 -> 3
    np.testing.assert_allclose(second.pose.position, np.array([3.0, 0.0, 0.0]))
    np.testing.assert_allclose(second.twist.linear, np.array([1.0, 0.0, 0.0]), atol=1e-12)
    np.testing.assert_allclose(second.twist.angular, np.zeros(3), atol=1e-12)
    assert second.stamp == 12.0
    assert (second.frame_id, second.child_frame_id) == ("bin_link", "footprint")
    assert gate.last_odometry is second


def test_first_detection_differences_against_unset_pose():
    gate, sink = _gate(_ScriptedDetector([_seen(-2.0)]), clock=_Clock(4.0))
    assert gate.process(IMAGE, CAL) is CycleOutcome.ACCEPTED
    np.testing.assert_allclose(sink.published[0].twist.linear, np.array([0.5, 0.0, 0.0]))
    assert not gate.history.is_first_sample


def test_repeated_stamp_is_skipped_without_advancing():
    gate, sink = _gate(_ScriptedDetector([_seen(-1.0), _seen(-2.0)]), clock=_Clock(5.0, 5.0))
    assert gate.process(IMAGE, CAL) is CycleOutcome.ACCEPTED
    assert gate.process(IMAGE, CAL) is CycleOutcome.REJECTED_DEGENERATE_INTERVAL
    assert len(sink.published) == 1
    np.testing.assert_allclose(gate.history.get().position, np.array([1.0, 0.0, 0.0]))


def test_accepted_cycle_broadcasts_footprint_pose():
    gate, _ = _gate(_ScriptedDetector([_seen(-1.5)]))
    gate.process(IMAGE, CAL)
    tf = gate.frame_graph.lookup_transform("bin_link", "footprint")
    np.testing.assert_allclose(tf.translation, np.array([1.5, 0.0, 0.0]))


class _EditingSink(OdometrySink):
    def __init__(self):
        self.errors = []

    def publish(self, odom):
        for arr in (odom.pose.position, odom.pose.quaternion, odom.twist.linear):
            try:
                arr[0] = 99.0
            except ValueError as exc:
                self.errors.append(exc)


def test_sink_cannot_edit_stored_previous_pose():
    sink = _EditingSink()
    gate = DetectionGate(
        detector=_ScriptedDetector([_seen(-1.0)]),
        frame_graph=_mounted_graph(),
        sink=sink,
        reprojector=FrameReprojector(clock=_Clock(10.0)),
        sleep=lambda s: None,
    )
    assert gate.process(IMAGE, CAL) is CycleOutcome.ACCEPTED
    assert len(sink.errors) == 3
    np.testing.assert_allclose(gate.history.get().position, np.array([1.0, 0.0, 0.0]))
    np.testing.assert_allclose(gate.history.get().quaternion, q_identity())


def test_bin_frame_must_differ_from_camera_frame():
    with pytest.raises(ValueError, match="bin frame"):
        DetectionGate(
            detector=_ScriptedDetector([]),
            frame_graph=_mounted_graph(),
            sink=_RecordingSink(),
            bin_frame="camera_link",
        )
