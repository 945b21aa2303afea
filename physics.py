"""
Mini-Golf Ball Physics
Shot impulse, semi-implicit Euler integration, exponential friction decay.
"""

import math
import numpy as np
from dataclasses import dataclass, field

# ──────────────────────────────────────────────
# Constants (world units, seconds)
# ──────────────────────────────────────────────
BALL_RADIUS: float = 0.06  # default ball radius when the course does not give one
GROUND_Y: float = 0.0  # height of the putting surface

# ── Runtime-editable behavior constants ───────────────────────────────────────
# These are read by name every call, so server.py can mutate them live via:
#   import physics as _phys;  _phys.FRICTION_K = 2.5
FRICTION_K: float = 2.0   # velocity-proportional decay rate (1/s)
REST_EPS: float = 0.01    # below this speed the ball accepts a new shot
STOP_EPS: float = 0.05    # below this speed velocity snaps to exactly zero


@dataclass
class Ball:
    """Golf ball: position, velocity and bounding radius."""
    position: np.ndarray = field(default_factory=lambda: np.array([0.0, GROUND_Y, 0.0]))
    velocity: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 0.0]))
    radius: float = BALL_RADIUS

    def __post_init__(self):
        self.position = np.array(self.position, dtype=float)
        self.velocity = np.array(self.velocity, dtype=float)
        self.radius = float(self.radius)

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))

    def is_moving(self) -> bool:
        return self.speed > 0.0


class BallIntegrator:
    """Owns the ball's velocity and is the only writer of its position.

    One frame is ``advance(dt)`` followed by ``apply_friction(dt)``; the
    controller checks the hole between the two so the collision sees the
    post-integration position and the pre-friction speed. ``step(dt)`` runs
    both halves for callers that do not need that split.
    """

    def __init__(self, ball: Ball = None):
        self.ball = ball if ball is not None else Ball()

    @property
    def position(self) -> np.ndarray:
        return self.ball.position

    @property
    def velocity(self) -> np.ndarray:
        return self.ball.velocity

    def at_rest(self) -> bool:
        return self.ball.speed < REST_EPS

    # ──────────────────────────────────────────
    # Shot impulse
    # ──────────────────────────────────────────
    def apply_impulse(self, velocity) -> bool:
        """
        Launch the ball with ``velocity`` if it is at rest.

        Returns:
            True when the impulse was accepted. A ball still moving faster
            than REST_EPS keeps its velocity and the call is ignored.
        """
        if not self.at_rest():
            return False
        self.ball.velocity = np.array(velocity, dtype=float)
        return True

    # ──────────────────────────────────────────
    # Integration
    # ──────────────────────────────────────────
    @staticmethod
    def _check_dt(dt: float) -> float:
        dt = float(dt)
        if not math.isfinite(dt) or dt < 0.0:
            raise ValueError(f"dt must be finite and non-negative, got {dt!r}")
        return dt

    def advance(self, dt: float) -> None:
        """Move the ball along its current velocity."""
        dt = self._check_dt(dt)
        self.ball.position = self.ball.position + self.ball.velocity * dt

    def apply_friction(self, dt: float) -> None:
        """Explicit Euler sub-step of v' = -FRICTION_K * v, then the rest snap."""
        dt = self._check_dt(dt)
        decay = max(0.0, 1.0 - FRICTION_K * dt)
        self.ball.velocity = self.ball.velocity * decay
        if self.ball.speed < STOP_EPS:
            self.ball.velocity = np.zeros(3)

    def step(self, dt: float) -> None:
        """Advance one frame of dt seconds."""
        self.advance(dt)
        self.apply_friction(dt)

    def stop(self) -> None:
        self.ball.velocity = np.zeros(3)

    def reset(self, position) -> None:
        """Place the ball at ``position`` with zero velocity."""
        self.ball.position = np.array(position, dtype=float)
        self.ball.velocity = np.zeros(3)

    def simulate(self, dt: float = 1 / 60, max_time: float = 10.0) -> float:
        """
        Run until the ball stops or max_time is reached.

        Returns:
            Elapsed time in seconds.
        """
        if not self._check_dt(dt) > 0.0:
            raise ValueError(f"simulate needs a positive dt, got {dt!r}")
        t = 0.0
        while t < max_time:
            self.step(dt)
            t += dt
            if not self.ball.is_moving():
                break
        return t
