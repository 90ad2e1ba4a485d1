import logging

from fiducial_odom.control.controller import OdometryController
from fiducial_odom.control.detection_gate import CycleOutcome
from fiducial_odom.control.display_provider import DisplayProvider, TuiDisplayProvider


class _FixedGate:
    def __init__(self, outcome):
        self.outcome = outcome
        self.last_odometry = None

    def process(self, image, calibration):
        return self.outcome


class _RecordingDisplay(DisplayProvider):
    def __init__(self):
        self.frames = []

    def update(self, frame):
        self.frames.append(frame)


class _Clock:
    def __init__(self):
        self.t = 100.0

    def __call__(self):
        return self.t


def test_tick_counts_outcomes():
    controller = OdometryController(_FixedGate(CycleOutcome.REJECTED_NO_MARKER))
    for _ in range(3):
        assert controller.tick(None, None) is CycleOutcome.REJECTED_NO_MARKER
    assert controller.frames == 3
    assert controller.outcome_counts[CycleOutcome.REJECTED_NO_MARKER] == 3
    assert controller.outcome_counts[CycleOutcome.ACCEPTED] == 0


def test_display_is_throttled():
    display = _RecordingDisplay()
    clock = _Clock()
    controller = OdometryController(
        _FixedGate(CycleOutcome.ACCEPTED), display_provider=display, display_hz=2.0, clock=clock
    )
    controller.tick(None, None)
    clock.t += 0.1
    controller.tick(None, None)
    clock.t += 0.5
    controller.tick(None, None)
    assert len(display.frames) == 2
    assert display.frames[-1].frames == 3
    assert display.frames[-1].outcome_counts[CycleOutcome.ACCEPTED] == 3


def test_display_disabled_with_zero_rate():
    display = _RecordingDisplay()
    controller = OdometryController(
        _FixedGate(CycleOutcome.ACCEPTED), display_provider=display, display_hz=0.0
    )
    controller.tick(None, None)
    assert display.frames == []


def test_tui_scroll_mode_logs_status(caplog):
    display = TuiDisplayProvider(cli_output="scroll")
    controller = OdometryController(
        _FixedGate(CycleOutcome.REJECTED_NO_MARKER), display_provider=display, display_hz=1.0
    )
    with caplog.at_level(logging.INFO):
        controller.tick(None, None)
    assert "no fix yet" in caplog.text
