"""
MiniGolfController - Layer 2 (Game Logic)

Owns the ball, the shot input, the hole detector and the stroke counter, and
runs them in a fixed order every frame. Communicates with Layer 3
(server.py) through:
  - pending_events : game events for the client (stroke, won, lip_out, …)
  - status_msg     : one-line status text

Layer 3 calls:
  ctrl.pointer_down/move/up(...) : between frames, buffered into ShotInput
  ctrl.step(dt)                  : once per frame
  ctrl.reset()                   : restart the current hole
"""

import logging
import os
from typing import Optional

import numpy as np

from collision import HoleCollision
from course import Course, DEFAULT_COURSE, collect_course_files, load_course_file
from physics import Ball, BallIntegrator
from shot_input import ShotInput, ray_plane_intersection

logger = logging.getLogger(__name__)


DEFAULT_STATUS_MSG = "Drag back from the ball and release to putt.  [R] Reset  [1-9] Course"


def run_frame(integrator: BallIntegrator, hole: HoleCollision, dt: float):
    """Integrate, test the hole against the moved ball, then apply friction.

    Returns:
        (CollisionResult, speed) where speed is measured after integration
        and before friction, the value the win check is judged on.
    """
    integrator.advance(dt)
    result = hole.check(integrator.ball.position, integrator.ball.radius)
    speed = integrator.ball.speed
    integrator.apply_friction(dt)
    return result, speed


class MiniGolfController:
    """Layer 2: frame driver, stroke counter and win policy."""

    # ── Class-level constants ─────────────────────────────────────────────────
    WIN_SPEED = 35.0        # fastest entry that still drops into the hole
    SIM_DT    = 1.0 / 60.0  # headless simulation step
    MAX_SIM_T = 20.0

    def __init__(self, course: Optional[Course] = None):
        self.shot_input = ShotInput()
        self.strokes = 0
        self.mode = "idle"     # "idle"|"rolling"|"won"
        self.status_msg = DEFAULT_STATUS_MSG

        self.pending_events: list[dict] = []
        self.course_files: list = collect_course_files()

        self.course: Course = None
        self.ball: Ball = None
        self.integrator: BallIntegrator = None
        self.hole: HoleCollision = None
        self.load_course(course if course is not None else Course.from_dict(DEFAULT_COURSE))

    # ──────────────────────────────────────────────────────────────────────────
    # Course management
    # ──────────────────────────────────────────────────────────────────────────

    def load_course(self, course: Course) -> None:
        self.course = course
        self.ball = Ball(position=course.ball_start.copy(), radius=course.ball_radius)
        self.integrator = BallIntegrator(self.ball)
        self.hole = HoleCollision(course.hole)
        self.shot_input.cancel()
        self.strokes = 0
        self.mode = "idle"
        self.status_msg = f"{course.name}: {DEFAULT_STATUS_MSG}"
        self.pending_events.append({"type": "course_loaded", "course": course.to_dict()})
        logger.info("[COURSE] loaded %s (hole=%s)", course.name, course.hole)

    def load_course_file(self, path: str) -> None:
        """Load a course module; on failure keep the current course."""
        try:
            course = load_course_file(path)
        except FileNotFoundError:
            self.status_msg = f"Course not found: {path}"
            return
        except Exception as exc:
            logger.warning("[COURSE] failed to load %s: %s", path, exc)
            self.status_msg = f"Course error: {exc}"
            return
        self.load_course(course)

    def select_course(self, index: int) -> None:
        """Load the index-th file from courses/ (0-based)."""
        if not 0 <= index < len(self.course_files):
            self.status_msg = f"No course #{index + 1}"
            return
        self.load_course_file(self.course_files[index])

    def reset(self) -> None:
        """Put the ball back on the tee and clear strokes and hole state together."""
        self.integrator.reset(self.course.ball_start.copy())
        self.hole.reset()
        self.shot_input.cancel()
        self.strokes = 0
        self.mode = "idle"
        self.status_msg = f"{self.course.name}: {DEFAULT_STATUS_MSG}"
        self.pending_events.append({"type": "reset"})

    # ──────────────────────────────────────────────────────────────────────────
    # Pointer input (between frames)
    # ──────────────────────────────────────────────────────────────────────────

    def pointer_down(self, origin, direction, pan: bool = False) -> None:
        if self.mode == "won":
            return
        point = None if pan else ray_plane_intersection(origin, direction)
        self.shot_input.on_drag_start(point, pan=pan)

    def pointer_move(self, origin, direction) -> None:
        if self.shot_input.is_aiming:
            self.shot_input.on_drag_move(ray_plane_intersection(origin, direction))

    def pointer_up(self, origin=None, direction=None) -> None:
        point = None
        if origin is not None and direction is not None:
            point = ray_plane_intersection(origin, direction)
        self.shot_input.on_drag_end(point)

    # ──────────────────────────────────────────────────────────────────────────
    # Main loop
    # ──────────────────────────────────────────────────────────────────────────

    def step(self, dt: float) -> None:
        """Advance one frame. Called every frame by L3."""
        if self.mode == "won":
            return

        # 1. Pending shot
        shot = self.shot_input.consume_shot()
        if shot is not None:
            if self.integrator.apply_impulse(shot.velocity):
                self.strokes += 1
                self.mode = "rolling"
                self.status_msg = f"Stroke {self.strokes}"
                self.pending_events.append({"type": "stroke", "strokes": self.strokes,
                                            "speed": round(shot.speed, 4)})
            else:
                logger.debug("[SHOT] ignored, ball still moving (%.3f)", self.ball.speed)

        # 2-4. Integrate, hole check, friction
        result, speed = run_frame(self.integrator, self.hole, dt)

        if result.entered:
            if speed <= self.WIN_SPEED:
                self.integrator.stop()
                self.mode = "won"
                self.status_msg = f"Holed in {self.strokes}!  [R] Play again"
                self.pending_events.append({"type": "won", "strokes": self.strokes,
                                            "speed": round(speed, 4)})
                logger.info("[HOLE] holed in %d at speed %.2f", self.strokes, speed)
                return
            self.pending_events.append({"type": "lip_out", "speed": round(speed, 4)})
            logger.info("[HOLE] too fast (%.2f > %.2f), ball rolls on", speed, self.WIN_SPEED)

        if self.mode == "rolling" and not self.ball.is_moving():
            self.mode = "idle"
            self.status_msg = f"Stroke {self.strokes}. Drag to putt again."

    # ──────────────────────────────────────────────────────────────────────────
    # State snapshot
    # ──────────────────────────────────────────────────────────────────────────

    def get_state(self) -> dict:
        b = self.ball
        aim = self.shot_input.aim_line()
        return {
            "pos": [round(float(v), 5) for v in b.position],
            "vel": [round(float(v), 5) for v in b.velocity],
            "speed": round(b.speed, 5),
            "mode": self.mode,
            "strokes": self.strokes,
            "aim": None if aim is None else [[round(float(v), 5) for v in p] for p in aim],
        }

    # ──────────────────────────────────────────────────────────────────────────
    # Headless API
    # ──────────────────────────────────────────────────────────────────────────

    def find_course(self, name: str) -> Course:
        """Resolve a course by name: the current one, or a file stem in courses/."""
        if name == self.course.name:
            return self.course
        for path in self.course_files:
            if os.path.splitext(os.path.basename(path))[0] == name:
                return load_course_file(path)
        raise ValueError(f"Unknown course: {name!r}")

    def simulate_shot(self, velocity, *, course: str = None, start=None,
                      sim_dt: float = None, max_t: float = None) -> dict:
        """Headless putt simulation.

        Non-destructive: works on a copy of the ball and a fresh hole
        detector, the controller's own state is untouched.

        Args:
            velocity: Launch velocity (3-vector, y is ignored).
            course:   Optional course name (see find_course); default is
                      the current course.
            start:    Optional start position; default is the course tee.
            sim_dt:   Step in seconds (default SIM_DT), must be > 0.
            max_t:    Simulated time limit (default MAX_SIM_T).

        Returns:
            ``dict`` with keys ``holed`` (bool), ``lipped`` (bool, any hole
            entry rejected for speed), ``lip_outs`` (int), ``sim_time``
            (float), ``final_pos`` ([x, y, z]), ``final_speed`` (float) and
            ``entry_speed`` (float or None).

        Raises:
            ValueError: unknown course name or a non-positive sim_dt.
        """
        sim_dt = self.SIM_DT if sim_dt is None else float(sim_dt)
        max_t = self.MAX_SIM_T if max_t is None else max_t
        if not sim_dt > 0.0:
            raise ValueError(f"sim_dt must be positive, got {sim_dt!r}")
        course = self.course if course is None else self.find_course(course)

        ball = Ball(position=course.ball_start.copy() if start is None else start,
                    radius=course.ball_radius)
        integrator = BallIntegrator(ball)
        # fresh detector unless the live one is disabled
        if course.hole is None and course is self.course:
            hole = self.hole
        else:
            hole = HoleCollision(course.hole)

        v = np.array(velocity, dtype=float)
        v[1] = 0.0
        integrator.apply_impulse(v)

        holed = False
        lip_outs = 0
        entry_speed = None
        t = 0.0
        while t < max_t:
            result, speed = run_frame(integrator, hole, sim_dt)
            t += sim_dt
            if result.entered:
                entry_speed = speed
                if speed <= self.WIN_SPEED:
                    integrator.stop()
                    holed = True
                    break
                lip_outs += 1
            if not ball.is_moving():
                break

        return {
            "holed": holed,
            "lipped": lip_outs > 0,
            "lip_outs": lip_outs,
            "sim_time": round(t, 4),
            "final_pos": [round(float(v), 6) for v in ball.position],
            "final_speed": round(ball.speed, 6),
            "entry_speed": None if entry_speed is None else round(entry_speed, 6),
        }

    def simulate_drag(self, drag_start, drag_end, **kwargs) -> dict:
        """Run a drag through a scratch ShotInput, then simulate_shot."""
        shot_input = ShotInput()
        shot_input.on_drag_start(drag_start)
        shot_input.on_drag_end(drag_end)
        shot = shot_input.consume_shot()
        velocity = np.zeros(3) if shot is None else shot.velocity
        return self.simulate_shot(velocity, **kwargs)
