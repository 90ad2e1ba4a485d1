"""In-memory frame graph answering transform lookups.

Each frame has at most one parent edge. A lookup walks both frames up to the
root of their tree and composes the two chains, so any pair of frames in the
same tree can be resolved. Only the latest value of every edge is kept.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from ..math3d.quaternion import q_identity
from ..math3d.transforms import compose, inverse_times
from .pose import Transform

logger = logging.getLogger(__name__)

_MAX_DEPTH = 64


class TransformUnavailableError(RuntimeError):
    """Lookup could not be answered (unknown frame, disconnected, too new)."""


class FrameGraph:
    def __init__(self) -> None:
        # child frame -> edge from its parent
        self._edges: dict[str, Transform] = {}
        self._static: set[str] = set()

    def set_transform(self, transform: Transform, static: bool = False) -> None:
        child = transform.child_frame_id
        if not child or not transform.frame_id:
            raise ValueError("transform frame ids must be non-empty")
        if child == transform.frame_id:
            raise ValueError(f"transform from '{child}' to itself is not allowed")
        if self._is_ancestor(child, transform.frame_id):
            raise ValueError(
                f"transform '{transform.frame_id}' -> '{child}' would create a loop"
            )
        previous = self._edges.get(child)
        if previous is not None and previous.frame_id != transform.frame_id:
            logger.debug(
                "[TF] frame '%s' re-parented: '%s' -> '%s'",
                child,
                previous.frame_id,
                transform.frame_id,
            )
        self._edges[child] = Transform(
            frame_id=transform.frame_id,
            child_frame_id=child,
            stamp=float(transform.stamp),
            translation=np.asarray(transform.translation, dtype=np.float64).reshape(3).copy(),
            rotation=np.asarray(transform.rotation, dtype=np.float64).reshape(4).copy(),
        )
        if static:
            self._static.add(child)
        else:
            self._static.discard(child)

    def _is_ancestor(self, frame: str, start: str) -> bool:
        current = start
        for _ in range(_MAX_DEPTH):
            if current == frame:
                return True
            edge = self._edges.get(current)
            if edge is None:
                return False
            current = edge.frame_id
        return True

    def has_frame(self, frame: str) -> bool:
        if frame in self._edges:
            return True
        return any(edge.frame_id == frame for edge in self._edges.values())

    def _chain_to_root(self, frame: str):
        """Return (root, t, q, oldest_dynamic_stamp)."""
        t = np.zeros(3, dtype=np.float64)
        q = q_identity()
        oldest: Optional[float] = None
        current = frame
        for _ in range(_MAX_DEPTH):
            edge = self._edges.get(current)
            if edge is None:
                return current, t, q, oldest
            t, q = compose(edge.translation, edge.rotation, t, q)
            if current not in self._static:
                oldest = edge.stamp if oldest is None else min(oldest, edge.stamp)
            current = edge.frame_id
        raise TransformUnavailableError(f"frame '{frame}' is part of a loop")

    def lookup_transform(
        self,
        target_frame: str,
        source_frame: str,
        stamp: Optional[float] = None,
    ) -> Transform:
        """Transform mapping points in source_frame into target_frame.

        stamp=None asks for the latest available data. An explicit stamp
        fails when some dynamic edge on the path is older than it.
        """
        for frame in (target_frame, source_frame):
            if not self.has_frame(frame):
                raise TransformUnavailableError(
                    f'"{frame}" passed to lookup_transform argument does not exist'
                )

        root_t, t_rt, q_rt, oldest_t = self._chain_to_root(target_frame)
        root_s, t_rs, q_rs, oldest_s = self._chain_to_root(source_frame)
        if root_t != root_s:
            raise TransformUnavailableError(
                f"could not find a connection between '{target_frame}' and "
                f"'{source_frame}' because they are not part of the same tree"
            )

        oldest = [s for s in (oldest_t, oldest_s) if s is not None]
        latest_common = min(oldest) if oldest else 0.0
        if stamp is not None and oldest and float(stamp) > latest_common:
            raise TransformUnavailableError(
                f"lookup would require extrapolation into the future: requested "
                f"{float(stamp):.6f}, latest data for '{target_frame}' -> "
                f"'{source_frame}' is {latest_common:.6f}"
            )

        translation, rotation = inverse_times(t_rt, q_rt, t_rs, q_rs)
        return Transform(
            frame_id=target_frame,
            child_frame_id=source_frame,
            stamp=latest_common,
            translation=translation,
            rotation=rotation,
        )
