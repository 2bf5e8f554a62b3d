"""
2D Clay-Court Ball Physics Engine
Per-frame integration, floor/wall response and sleep detection.
"""

import enum
import numpy as np
from dataclasses import dataclass, field
from typing import List

# ──────────────────────────────────────────────
# Constants (pixel / frame-step units)
# ──────────────────────────────────────────────
BALL_RADIUS: float = 15.0  # px

# Tuned for pressurized tennis balls on clay
GRAVITY: float = 0.6            # px / step^2
RESTITUTION: float = 0.78       # floor bounce, vertical speed retained
FRICTION_AIR: float = 0.995     # per-step drag on both axes
FRICTION_GROUND: float = 0.98   # horizontal drag on floor contact
VELOCITY_DAMPING: float = 0.1   # |vy| below this after a bounce snaps to 0
WALL_RESTITUTION: float = 0.7   # side-wall bounce
SPIN_DAMPING: float = 0.95      # rotation speed kept per floor contact

# Numerical thresholds
SLEEP_SPEED: float = 0.1        # max |vx| for a resting ball to sleep

# ── Runtime-editable behavior constants ───────────────────────────────────────
# Everything above is read by name every call, so server.py can mutate it live:
#   import physics as _phys;  _phys.RESTITUTION = 0.6


class WallSide(enum.Enum):
    LEFT = 0
    RIGHT = 1


@dataclass(eq=False)
class Ball:
    """Tennis ball with 2D position/velocity and cosmetic spin."""
    id: int
    position: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    velocity: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    rotation: float = 0.0
    rotation_speed: float = 0.0
    is_sleeping: bool = False
    radius: float = BALL_RADIUS
    floor_hits: int = 0

    def __post_init__(self):
        self.position = np.array(self.position, dtype=float)
        self.velocity = np.array(self.velocity, dtype=float)


class PhysicsEngine:
    """Fixed-step bouncing-ball engine using numpy."""

    def __init__(self):
        self.events: list = []

    # ──────────────────────────────────────────
    # 1. Integration
    # ──────────────────────────────────────────
    @staticmethod
    def _integrate(ball: Ball) -> None:
        """Gravity, then air drag, then position and spin."""
        ball.velocity[1] += GRAVITY
        ball.velocity *= FRICTION_AIR
        ball.position += ball.velocity
        ball.rotation += ball.rotation_speed

    # ──────────────────────────────────────────
    # 2. Floor Collision
    # ──────────────────────────────────────────
    def _check_floor_collision(self, ball: Ball, height: float) -> None:
        """Clamp to the floor, bounce, apply clay drag and test for sleep.

        The snap below VELOCITY_DAMPING is what ends the bounce sequence;
        the sleep test compares against exact zero after the snap.
        """
        R = ball.radius
        if ball.position[1] + R <= height:
            return

        impact_speed = abs(float(ball.velocity[1]))
        ball.position[1] = height - R
        ball.velocity[1] *= -RESTITUTION
        ball.velocity[0] *= FRICTION_GROUND
        ball.rotation_speed *= SPIN_DAMPING
        ball.floor_hits += 1

        vy = abs(ball.velocity[1])
        if 0 < vy < VELOCITY_DAMPING:
            ball.velocity[1] = 0.0

        self.events.append({"type": "floor", "ball": ball.id, "speed": impact_speed})

        if ball.velocity[1] == 0 and abs(ball.velocity[0]) < SLEEP_SPEED:
            ball.is_sleeping = True
            self.events.append({"type": "sleep", "ball": ball.id})

    # ──────────────────────────────────────────
    # 3. Wall Collision
    # ──────────────────────────────────────────
    def _check_wall_collisions(self, ball: Ball, width: float) -> None:
        """Keep the ball between the side walls (left wins if both overlap)."""
        R = ball.radius
        if ball.position[0] - R < 0:
            side = WallSide.LEFT
            ball.position[0] = R
        elif ball.position[0] + R > width:
            side = WallSide.RIGHT
            ball.position[0] = width - R
        else:
            return

        impact_speed = abs(float(ball.velocity[0]))
        ball.velocity[0] *= -WALL_RESTITUTION
        self.events.append({
            "type": "wall", "ball": ball.id, "side": side.name.lower(),
            "speed": impact_speed,
        })

    # ──────────────────────────────────────────
    # Main Update Loop
    # ──────────────────────────────────────────
    def update(self, balls: List[Ball], width: float, height: float) -> None:
        """Advance every awake ball by exactly one step."""
        self.events.clear()
        for ball in balls:
            if ball.is_sleeping:
                continue
            self._integrate(ball)
            self._check_floor_collision(ball, height)
            self._check_wall_collisions(ball, width)

    def simulate(self, balls: List[Ball], width: float, height: float,
                 max_steps: int = 2000) -> int:
        """
        Run until every ball sleeps or max_steps is reached.

        Returns:
            Number of steps taken.
        """
        steps = 0
        while steps < max_steps:
            if all(b.is_sleeping for b in balls):
                break
            self.update(balls, width, height)
            steps += 1
        return steps
