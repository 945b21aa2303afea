"""
Slingshot shot input.

Pointer-down marks a point on the ground plane, pointer-up releases the shot
in the opposite direction of the pull. Shot speed is proportional to the
unclamped pull length; only the aim line shown to the player is clamped.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from physics import GROUND_Y

logger = logging.getLogger(__name__)

# ── Tunables (read by name every call) ────────────────────────────────────────
MIN_DRAG: float = 0.05      # shorter pulls are discarded
MAX_DRAG: float = 2.5       # aim-line clamp (visual only)
POWER_SCALE: float = 21.0   # pull length -> launch speed


class GestureState(enum.Enum):
    IDLE = 0
    AIMING = 1


@dataclass
class DragGesture:
    active: bool = False
    start_point: np.ndarray = field(default_factory=lambda: np.zeros(3))
    current_point: np.ndarray = field(default_factory=lambda: np.zeros(3))


@dataclass(frozen=True)
class ShotEvent:
    velocity: np.ndarray

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))


def ray_plane_intersection(origin, direction,
                           ground_y: float = GROUND_Y) -> Optional[np.ndarray]:
    """Intersect a pointer ray with the horizontal plane y = ground_y.

    Returns None when the ray is parallel to the plane or points away from it.
    """
    origin = np.asarray(origin, dtype=float)
    direction = np.asarray(direction, dtype=float)
    dy = direction[1]
    if abs(dy) < 1e-12:
        return None
    t = (ground_y - origin[1]) / dy
    if t < 0.0:
        return None
    hit = origin + direction * t
    hit[1] = ground_y
    return hit


class ShotInput:
    """Turns one drag gesture into at most one pending ShotEvent."""

    def __init__(self):
        self.gesture = DragGesture()
        self._pending: Optional[ShotEvent] = None

    @property
    def state(self) -> GestureState:
        return GestureState.AIMING if self.gesture.active else GestureState.IDLE

    @property
    def is_aiming(self) -> bool:
        return self.gesture.active

    @property
    def has_pending_shot(self) -> bool:
        return self._pending is not None

    # ──────────────────────────────────────────
    # Pointer events
    # ──────────────────────────────────────────
    def on_drag_start(self, ground_point, pan: bool = False) -> None:
        """Begin aiming at ``ground_point``.

        ``pan`` is set when the modifier for camera panning is held; the drag
        then belongs to the camera and no gesture starts. A ``None`` point
        means the pointer ray missed the ground.
        """
        if pan:
            self.gesture.active = False
            return
        if ground_point is None:
            return
        point = np.array(ground_point, dtype=float)
        self.gesture.active = True
        self.gesture.start_point = point
        self.gesture.current_point = point.copy()

    def on_drag_move(self, ground_point) -> None:
        if not self.gesture.active or ground_point is None:
            return
        self.gesture.current_point = np.array(ground_point, dtype=float)

    def on_drag_end(self, ground_point=None) -> Optional[ShotEvent]:
        """Finish the gesture and queue a shot if the pull is long enough.

        Returns the queued ShotEvent, or None when nothing was queued.
        """
        if not self.gesture.active:
            return None
        self.on_drag_move(ground_point)
        self.gesture.active = False

        drag = self.gesture.start_point - self.gesture.current_point
        drag[1] = 0.0
        length = float(np.linalg.norm(drag))
        if length < MIN_DRAG:
            logger.debug("[SHOT] drag %.4f below minimum, no shot", length)
            return None

        direction = drag / length
        speed = length * POWER_SCALE
        velocity = direction * speed
        velocity[1] = 0.0
        self._pending = ShotEvent(velocity)
        logger.debug("[SHOT] queued speed=%.3f dir=(%.3f, %.3f)",
                     speed, direction[0], direction[2])
        return self._pending

    def consume_shot(self) -> Optional[ShotEvent]:
        """Return the pending shot once; later calls return None."""
        shot, self._pending = self._pending, None
        return shot

    def cancel(self) -> None:
        """Drop any gesture in progress and any unconsumed shot."""
        self.gesture.active = False
        self._pending = None

    # ──────────────────────────────────────────
    # Aim line (for the renderer)
    # ──────────────────────────────────────────
    def aim_line(self) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        """Return (start, end) of the pull line with its length clamped to MAX_DRAG."""
        if not self.gesture.active:
            return None
        start = self.gesture.start_point.copy()
        pull = self.gesture.current_point - start
        pull[1] = 0.0
        length = float(np.linalg.norm(pull))
        if length > MAX_DRAG:
            pull = pull * (MAX_DRAG / length)
        return start, start + pull
