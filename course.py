"""
Course layouts and the hole locator.

A course is a set of named axis-aligned bounding boxes (the static scene
objects exported from the modelling tool). Course files are plain Python
modules exposing a ``COURSE`` dict::

    COURSE = {
        "name": "Straight",
        "rotation_y": 90.0,              # optional, degrees about +Y
        "objects": {
            "Ball": {"min": [-0.06, 0.0, 2.94], "max": [0.06, 0.12, 3.06]},
            "Hole": {"min": [-0.1, -0.05, -3.1], "max": [0.1, 0.0, -2.9]},
            "Green": {"min": [-1.0, -0.1, -4.0], "max": [1.0, 0.0, 4.0]},
        },
    }
"""

import importlib.util
import logging
import math
import os
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from collision import HoleRegion
from physics import BALL_RADIUS, GROUND_Y

logger = logging.getLogger(__name__)

HOLE_NAMES = ("Hole", "hole", "HOLE")
BALL_NAME = "Ball"


def _rotate_bounds(lo: np.ndarray, hi: np.ndarray, angle_deg: float):
    """Rotate a box about +Y and return the enclosing axis-aligned box."""
    a = math.radians(angle_deg)
    c, s = math.cos(a), math.sin(a)
    rot = np.array([[c, 0.0, s],
                    [0.0, 1.0, 0.0],
                    [-s, 0.0, c]])
    corners = np.array([[x, y, z]
                        for x in (lo[0], hi[0])
                        for y in (lo[1], hi[1])
                        for z in (lo[2], hi[2])])
    moved = corners @ rot.T
    return moved.min(axis=0), moved.max(axis=0)


def parse_objects(raw: dict, rotation_y: float = 0.0) -> dict:
    """Normalise ``{"name": {"min": [...], "max": [...]}}`` to numpy bound pairs."""
    objects = {}
    for name, bd in raw.items():
        lo = np.asarray(bd["min"], dtype=float)
        hi = np.asarray(bd["max"], dtype=float)
        if lo.shape != (3,) or hi.shape != (3,):
            raise ValueError(f"object '{name}': min/max must be 3-vectors")
        if np.any(hi < lo):
            raise ValueError(f"object '{name}': max is below min")
        if rotation_y:
            lo, hi = _rotate_bounds(lo, hi, rotation_y)
        objects[name] = (lo, hi)
    return objects


def locate_hole(objects: dict) -> Optional[HoleRegion]:
    """Find the hole among named bounds.

    Exact names are tried first, then the first name containing "hole" in
    any case. Returns None when the course has no hole.
    """
    for name in HOLE_NAMES:
        if name in objects:
            return HoleRegion.from_bounds(*objects[name])
    for name, bounds in objects.items():
        if "hole" in name.lower():
            return HoleRegion.from_bounds(*bounds)
    return None


@dataclass
class Course:
    name: str
    objects: dict = field(default_factory=dict)
    hole: Optional[HoleRegion] = None
    ball_start: np.ndarray = field(default_factory=lambda: np.array([0.0, GROUND_Y, 0.0]))
    ball_radius: float = BALL_RADIUS

    @classmethod
    def from_dict(cls, data: dict) -> "Course":
        objects = parse_objects(data.get("objects", {}), float(data.get("rotation_y", 0.0)))
        course = cls(name=str(data.get("name", "Untitled")), objects=objects,
                     hole=locate_hole(objects))

        ball = objects.get(BALL_NAME)
        if ball is not None:
            lo, hi = ball
            size = hi - lo
            course.ball_radius = max(size[0], size[2]) / 2.0
            course.ball_start = (lo + hi) / 2.0
        elif "ball_start" in data:
            course.ball_start = np.asarray(data["ball_start"], dtype=float)
            course.ball_radius = float(data.get("ball_radius", BALL_RADIUS))
        else:
            logger.warning("[COURSE] %s: no ball object, starting at origin", course.name)
        return course

    def to_dict(self) -> dict:
        hole = None
        if self.hole is not None:
            hole = {"center": [round(c, 5) for c in self.hole.center],
                    "radius": round(self.hole.radius, 5)}
        return {
            "name": self.name,
            "ball_start": [round(float(v), 5) for v in self.ball_start],
            "ball_radius": round(self.ball_radius, 5),
            "hole": hole,
        }


DEFAULT_COURSE = {
    "name": "Practice Green",
    "objects": {
        "Ball": {"min": [-0.06, 0.0, 2.94], "max": [0.06, 0.12, 3.06]},
        "Hole": {"min": [-0.1, -0.05, -3.1], "max": [0.1, 0.0, -2.9]},
        "Green": {"min": [-1.5, -0.1, -4.0], "max": [1.5, 0.0, 4.0]},
    },
}


def collect_course_files(directory: str = "courses") -> list:
    """Return sorted .py course files from ``directory``."""
    if not os.path.isdir(directory):
        return []
    return sorted(os.path.join(directory, f)
                  for f in os.listdir(directory)
                  if f.endswith(".py") and not f.startswith("_"))


def load_course_file(path: str) -> Course:
    """Import a course module and build its Course.

    Raises:
        FileNotFoundError: path does not exist.
        ValueError: the module has no COURSE dict or the dict is malformed.
    """
    abs_path = os.path.abspath(path)
    if not os.path.exists(abs_path):
        raise FileNotFoundError(abs_path)
    spec = importlib.util.spec_from_file_location("_user_course", abs_path)
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)
    data = getattr(mod, "COURSE", None)
    if not isinstance(data, dict):
        raise ValueError(f"No COURSE dict in {os.path.basename(abs_path)}")
    try:
        return Course.from_dict(data)
    except (KeyError, TypeError) as exc:
        raise ValueError(f"Malformed COURSE in {os.path.basename(abs_path)}: {exc}") from exc
