"""Single-slot history of the last accepted pose."""

from __future__ import annotations

from dataclasses import replace

from ..math3d.quaternion import q_identity, q_is_zero
from .pose import PoseSample, unset_pose_sample


class PoseHistory:
    """Holds exactly one previous pose; starts at the unset sentinel."""

    def __init__(self) -> None:
        self._previous = unset_pose_sample()
        self._has_sample = False

    @property
    def is_first_sample(self) -> bool:
        """Whether no real sample has been adopted yet."""
        return not self._has_sample

    def get(self) -> PoseSample:
        if q_is_zero(self._previous.quaternion):
            return replace(self._previous, quaternion=q_identity())
        return self._previous

    def advance(self, sample: PoseSample) -> None:
        self._previous = sample
        self._has_sample = True
