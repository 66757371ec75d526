"""
Zoom window navigation for the time-series chart.

The visible part of the chart is a window ``[start, end]`` in percent of the
loaded timeline. Pan and jump commands move it by a narrow or wide step;
zoom events reported by the chart (buttons, slider drags, mouse wheel) are
adopted and adapt the step sizes to what the user is looking at.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple

from .errors import NavigationDegenerateWindow

logger = logging.getLogger("ViEventLog")

DEFAULT_WIDE_STEP = 33.34
DEFAULT_NARROW_STEP = 16.67
EXPLORE_WIDE_STEP = 20.0
EXPLORE_NARROW_STEP = 10.0

FULL_WINDOW_THRESHOLD = 95.0
MIN_WINDOW_SIZE = 2.0
MIN_NARROW_STEP = 1.0

# (minimum hours, wide step, narrow step), checked top down
STEP_PROFILES = (
    (720.0, 11.67, 6.0),
    (336.0, 15.0, 7.5),
)

ZoomDispatch = Callable[[float, float], None]


def step_profile_for_hours(hours: float) -> Tuple[float, float]:
    """Step sizes for a loaded span, so a pan covers a similar wall-clock time."""
    if hours > STEP_PROFILES[0][0]:
        return STEP_PROFILES[0][1], STEP_PROFILES[0][2]
    if hours >= STEP_PROFILES[1][0]:
        return STEP_PROFILES[1][1], STEP_PROFILES[1][2]
    return DEFAULT_WIDE_STEP, DEFAULT_NARROW_STEP


def _clamp(value: float) -> float:
    return min(100.0, max(0.0, float(value)))


def _require_min_window(start: float, end: float) -> None:
    if end - start < MIN_WINDOW_SIZE:
        raise NavigationDegenerateWindow(start, end)


@dataclass
class ZoomWindow:
    start: float = 50.0
    end: float = 100.0
    wide_step: float = DEFAULT_WIDE_STEP
    narrow_step: float = DEFAULT_NARROW_STEP

    @property
    def size(self) -> float:
        return self.end - self.start

    def as_tuple(self) -> Tuple[float, float]:
        return self.start, self.end


class ZoomNavigator:
    """State machine over a ZoomWindow.

    ``dispatch`` pushes a window to the chart. A chart widget typically echoes
    it back as a button-style zoom event, which ``handle_event`` adopts.
    """

    def __init__(self, dispatch: Optional[ZoomDispatch] = None):
        self.window = ZoomWindow()
        self._dispatch = dispatch
        self._correcting = False

    def bind(self, dispatch: ZoomDispatch) -> None:
        self._dispatch = dispatch

    @property
    def start(self) -> float:
        return self.window.start

    @property
    def end(self) -> float:
        return self.window.end

    def _apply(self) -> None:
        if self._dispatch is not None:
            self._dispatch(self.window.start, self.window.end)

    def _set_default_steps(self) -> None:
        self.window.wide_step = DEFAULT_WIDE_STEP
        self.window.narrow_step = DEFAULT_NARROW_STEP

    # Commands

    def _shift_left(self, step: float) -> None:
        w = self.window
        size = w.size
        w.start -= step
        if w.start < 0:
            w.start = 0.0
            w.end = min(100.0, size)
        else:
            w.end -= step
        self._apply()

    def _shift_right(self, step: float) -> None:
        w = self.window
        size = w.size
        w.end += step
        if w.end > 100:
            w.end = 100.0
            w.start = max(0.0, 100.0 - size)
        else:
            w.start += step
        self._apply()

    def jump_left(self) -> None:
        self._shift_left(self.window.wide_step)

    def pan_left(self) -> None:
        self._shift_left(self.window.narrow_step)

    def pan_right(self) -> None:
        self._shift_right(self.window.narrow_step)

    def jump_right(self) -> None:
        self._shift_right(self.window.wide_step)

    def center(self) -> None:
        self.window = ZoomWindow(40.0, 60.0, EXPLORE_WIDE_STEP, EXPLORE_NARROW_STEP)
        self._apply()

    def full(self) -> None:
        self.window.start, self.window.end = 0.0, 100.0
        self._apply()

    COMMANDS = ("jump_left", "pan_left", "center", "pan_right", "jump_right", "full")

    def command(self, name: str) -> None:
        if name not in self.COMMANDS:
            raise ValueError(f"Unknown navigation command '{name}'")
        getattr(self, name)()

    # Data reloads

    def reset_for_range(self, hours: float) -> None:
        """Newest half of a freshly loaded timeline, steps scaled to its span."""
        wide, narrow = step_profile_for_hours(hours)
        self.window = ZoomWindow(50.0, 100.0, wide, narrow)

    def reset_for_date(self) -> None:
        """Whole timeline of a single-day load; step sizes are kept."""
        self.window.start, self.window.end = 0.0, 100.0

    # Chart events

    def _collapse_if_full(self) -> None:
        # a window covering (almost) everything can't be panned, so park it
        # on the newer half with default steps
        if self.window.size > FULL_WINDOW_THRESHOLD:
            self.window.start = 50.0
            self._set_default_steps()

    def on_button_event(self, start: float, end: float) -> None:
        self.window.start, self.window.end = _clamp(start), _clamp(end)
        self._collapse_if_full()

    def on_gesture_event(self, batch: Sequence[Mapping[str, float]]) -> None:
        if not batch:
            return
        w = self.window
        w.start, w.end = _clamp(batch[0]["start"]), _clamp(batch[0]["end"])
        size = w.size
        w.wide_step = max(MIN_WINDOW_SIZE, size)
        w.narrow_step = max(MIN_NARROW_STEP, size / 2)

        try:
            _require_min_window(w.start, w.end)
        except NavigationDegenerateWindow as e:
            logger.debug(f"{e}, widening to {MIN_WINDOW_SIZE}")
            w.start = w.end - MIN_WINDOW_SIZE
            if w.end < MIN_WINDOW_SIZE:
                w.start, w.end = 0.0, MIN_WINDOW_SIZE
            if not self._correcting:
                self._correcting = True
                try:
                    self._apply()
                finally:
                    self._correcting = False

        self._collapse_if_full()

    def handle_event(self, event: Mapping[str, Any]) -> None:
        """Dispatch a chart zoom event by its shape."""
        if event.get("start") is not None:
            self.on_button_event(event["start"], event["end"])
        elif event.get("batch") is not None:
            self.on_gesture_event(event["batch"])
        else:
            logger.debug(f"Ignoring zoom event without window: {event}")
