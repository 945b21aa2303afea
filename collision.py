"""
Hole collision detection.

The hole and the ball are treated as circles in the xz ground plane. Entry is
reported on the rising edge only, so a ball sitting over the hole for many
frames produces a single ``entered`` event.
"""

import logging
from dataclasses import dataclass
from typing import NamedTuple, Optional

import numpy as np

logger = logging.getLogger(__name__)

# Slack for mesh-origin / pivot differences between the ball and hole models.
MARGIN: float = 0.01


@dataclass(frozen=True)
class HoleRegion:
    """Static hole footprint: center point and planar radius."""
    center: tuple
    radius: float

    def __post_init__(self):
        object.__setattr__(self, "center", tuple(float(c) for c in self.center))
        object.__setattr__(self, "radius", float(self.radius))

    @classmethod
    def from_bounds(cls, bounds_min, bounds_max) -> "HoleRegion":
        """Build a region from an axis-aligned bounding box.

        The radius is half the larger horizontal extent of the box.
        """
        lo = np.asarray(bounds_min, dtype=float)
        hi = np.asarray(bounds_max, dtype=float)
        size = hi - lo
        return cls(center=tuple((lo + hi) / 2.0), radius=max(size[0], size[2]) / 2.0)


@dataclass
class CollisionState:
    previously_colliding: bool = False


class CollisionResult(NamedTuple):
    colliding: bool
    entered: bool
    distance: float = float("inf")


NO_COLLISION = CollisionResult(False, False)


def planar_distance(a, b) -> float:
    """Euclidean distance in the xz plane, ignoring height."""
    dx = float(a[0]) - float(b[0])
    dz = float(a[2]) - float(b[2])
    return float(np.hypot(dx, dz))


def check_hole(state: CollisionState, region: HoleRegion,
               ball_position, ball_radius: float) -> CollisionResult:
    """Test the ball against the hole and update ``state`` in place."""
    dist = planar_distance(ball_position, region.center)
    colliding = dist <= region.radius + ball_radius - MARGIN
    entered = colliding and not state.previously_colliding
    state.previously_colliding = colliding
    return CollisionResult(colliding, entered, dist)


class HoleCollision:
    """Per-game hole detector with explicit previous-overlap state."""

    def __init__(self, region: Optional[HoleRegion]):
        self.region = region
        self.state = CollisionState()
        if region is None:
            logger.warning("[HOLE] no hole found; hole collisions are disabled")

    @property
    def enabled(self) -> bool:
        return self.region is not None

    def check(self, ball_position, ball_radius: float) -> CollisionResult:
        if self.region is None:
            return NO_COLLISION
        result = check_hole(self.state, self.region, ball_position, ball_radius)
        if result.entered:
            logger.info(
                "[HOLE] ball entered hole (dist=%.3f, hole_radius=%.3f, ball_radius=%.3f)",
                result.distance, self.region.radius, ball_radius,
            )
        return result

    def reset(self) -> None:
        self.state.previously_colliding = False
