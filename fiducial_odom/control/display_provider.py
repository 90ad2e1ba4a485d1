"""Display providers for rendering runtime odometry state."""

from __future__ import annotations

import logging
import math
import sys
from dataclasses import dataclass
from typing import Optional

from ..math3d.quaternion import q_to_rpy
from .detection_gate import CycleOutcome
from .odometry import OdometryEstimate

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DisplayFrame:
    """Runtime frame data shared by all display providers."""

    outcome: CycleOutcome
    odometry: Optional[OdometryEstimate]
    outcome_counts: dict[CycleOutcome, int]
    frames: int


class DisplayProvider:
    """Base display provider interface."""

    def update(self, frame: DisplayFrame) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


def _status_lines(frame: DisplayFrame) -> list[str]:
    counts = frame.outcome_counts
    lines = [
        f"frames          = {frame.frames}",
        f"last outcome    = {frame.outcome.value}",
        (
            "accepted/none   = "
            f"{counts.get(CycleOutcome.ACCEPTED, 0)}/"
            f"{counts.get(CycleOutcome.REJECTED_NO_MARKER, 0)}"
        ),
        (
            "tf/dt/detect    = "
            f"{counts.get(CycleOutcome.REJECTED_TRANSFORM_FAILURE, 0)}/"
            f"{counts.get(CycleOutcome.REJECTED_DEGENERATE_INTERVAL, 0)}/"
            f"{counts.get(CycleOutcome.REJECTED_DETECTION_FAILURE, 0)}"
        ),
    ]
    odom = frame.odometry
    if odom is None:
        lines.append("pose            = (no fix yet)")
        return lines

    p = odom.pose.position
    rpy = [math.degrees(a) for a in q_to_rpy(odom.pose.quaternion)]
    v = odom.twist.linear
    w = odom.twist.angular
    lines.extend(
        [
            f"frame           = {odom.frame_id} -> {odom.child_frame_id}",
            f"xyz (m)         = [{p[0]: .3f}, {p[1]: .3f}, {p[2]: .3f}]",
            f"rpy (deg)       = [{rpy[0]: .2f}, {rpy[1]: .2f}, {rpy[2]: .2f}]",
            f"v (m/s)         = [{v[0]: .3f}, {v[1]: .3f}, {v[2]: .3f}]",
            f"rpy rate (r/s)  = [{w[0]: .3f}, {w[1]: .3f}, {w[2]: .3f}]",
        ]
    )
    return lines


class _CliStatsSink:
    """Writes status lines to stderr, redrawn in place on a tty in live mode."""

    def __init__(self, mode: str):
        self.mode = "live" if mode == "live" else "scroll"
        self._is_tty = bool(getattr(sys.stderr, "isatty", lambda: False)())
        self._live_enabled = self.mode == "live" and self._is_tty
        self._line_count = 0

    def emit(self, lines: list[str], scroll_line: str) -> None:
        if not self._live_enabled:
            logger.info(scroll_line)
            return

        out = sys.stderr
        if self._line_count > 0:
            out.write(f"\x1b[{self._line_count}F")

        max_lines = max(self._line_count, len(lines))
        for i in range(max_lines):
            line = lines[i] if i < len(lines) else ""
            out.write("\x1b[2K")
            out.write(line)
            out.write("\n")
        out.flush()
        self._line_count = len(lines)


class TuiDisplayProvider(DisplayProvider):
    """Terminal status panel (live) or periodic log line (scroll)."""

    def __init__(self, cli_output: str = "live"):
        self.cli_sink = _CliStatsSink(cli_output)

    def update(self, frame: DisplayFrame) -> None:
        odom = frame.odometry
        if odom is None:
            scroll_line = "[ODOM] frames=%d outcome=%s (no fix yet)" % (
                frame.frames,
                frame.outcome.value,
            )
        else:
            p = odom.pose.position
            v = odom.twist.linear
            scroll_line = (
                "[ODOM] frames=%d outcome=%s xyz=(%.3f, %.3f, %.3f) v=(%.3f, %.3f, %.3f)"
                % (frame.frames, frame.outcome.value, p[0], p[1], p[2], v[0], v[1], v[2])
            )
        self.cli_sink.emit(
            lines=["Fiducial Odometry"] + _status_lines(frame),
            scroll_line=scroll_line,
        )
