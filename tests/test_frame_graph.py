import math

import numpy as np
import pytest

from fiducial_odom.control.frame_graph import FrameGraph, TransformUnavailableError
from fiducial_odom.control.pose import Transform, identity_transform
from fiducial_odom.math3d.quaternion import q_identity, rpy_to_q
from fiducial_odom.math3d.transforms import apply


def _tf(parent, child, xyz, q=None, stamp=0.0):
    return Transform(
        frame_id=parent,
        child_frame_id=child,
        stamp=stamp,
        translation=np.array(xyz, dtype=np.float64),
        rotation=q_identity() if q is None else q,
    )


def test_lookup_direct_edge():
    graph = FrameGraph()
    graph.set_transform(_tf("footprint", "camera_link", [0.1, 0.0, 0.3]), static=True)
    tf = graph.lookup_transform("footprint", "camera_link")
    assert (tf.frame_id, tf.child_frame_id) == ("footprint", "camera_link")
    np.testing.assert_allclose(tf.translation, np.array([0.1, 0.0, 0.3]))


def test_lookup_reverse_edge_is_inverse():
    graph = FrameGraph()
    q = rpy_to_q(0.0, 0.0, math.pi / 2.0)
    graph.set_transform(_tf("footprint", "camera_link", [1.0, 0.0, 0.0], q), static=True)
    tf = graph.lookup_transform("camera_link", "footprint")
    # footprint origin seen from the camera
    p = apply(tf.translation, tf.rotation, np.zeros(3))
    np.testing.assert_allclose(p, np.array([0.0, 1.0, 0.0]), atol=1e-9)


def test_lookup_through_common_root():
    graph = FrameGraph()
    graph.set_transform(_tf("bin_link", "footprint", [2.0, 0.0, 0.0], stamp=5.0))
    graph.set_transform(_tf("footprint", "camera_link", [0.0, 0.0, 0.5]), static=True)
    graph.set_transform(_tf("bin_link", "marker", [0.0, 1.0, 0.0]), static=True)
    tf = graph.lookup_transform("marker", "camera_link")
    np.testing.assert_allclose(tf.translation, np.array([2.0, -1.0, 0.5]), atol=1e-12)
    assert tf.stamp == 5.0


def test_unknown_frame_raises():
    graph = FrameGraph()
    graph.set_transform(identity_transform("footprint", "camera_link"), static=True)
    with pytest.raises(TransformUnavailableError, match="does not exist"):
        graph.lookup_transform("camera_link", "nowhere")


def test_disconnected_trees_raise():
    graph = FrameGraph()
    graph.set_transform(identity_transform("a", "b"))
    graph.set_transform(identity_transform("c", "d"))
    with pytest.raises(TransformUnavailableError, match="same tree"):
        graph.lookup_transform("b", "d")


def test_explicit_stamp_newer_than_data_raises():
    graph = FrameGraph()
    graph.set_transform(_tf("bin_link", "footprint", [0.0, 0.0, 0.0], stamp=1.0))
    graph.lookup_transform("bin_link", "footprint", stamp=1.0)
    with pytest.raises(TransformUnavailableError, match="extrapolation"):
        graph.lookup_transform("bin_link", "footprint", stamp=2.0)


def test_static_edges_never_extrapolate():
    graph = FrameGraph()
    graph.set_transform(identity_transform("footprint", "camera_link"), static=True)
    tf = graph.lookup_transform("camera_link", "footprint", stamp=1e9)
    np.testing.assert_allclose(tf.translation, np.zeros(3))


def test_set_transform_replaces_edge():
    graph = FrameGraph()
    graph.set_transform(_tf("bin_link", "footprint", [1.0, 0.0, 0.0], stamp=1.0))
    graph.set_transform(_tf("bin_link", "footprint", [3.0, 0.0, 0.0], stamp=2.0))
    tf = graph.lookup_transform("bin_link", "footprint")
    np.testing.assert_allclose(tf.translation, np.array([3.0, 0.0, 0.0]))


def test_self_edge_rejected():
    with pytest.raises(ValueError):
        FrameGraph().set_transform(identity_transform("a", "a"))


def test_edge_closing_a_loop_is_rejected():
    graph = FrameGraph()
    graph.set_transform(identity_transform("footprint", "camera_link"), static=True)
    with pytest.raises(ValueError, match="loop"):
        graph.set_transform(identity_transform("camera_link", "footprint"))
    # graph still answers lookups
    tf = graph.lookup_transform("camera_link", "footprint")
    np.testing.assert_allclose(tf.translation, np.zeros(3))


def test_loop_through_several_edges_is_rejected():
    graph = FrameGraph()
    graph.set_transform(identity_transform("a", "b"))
    graph.set_transform(identity_transform("b", "c"))
    with pytest.raises(ValueError, match="loop"):
        graph.set_transform(identity_transform("c", "a"))
