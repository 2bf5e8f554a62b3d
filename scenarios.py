"""
Scenario Presets
Deterministic court set-ups (single drop, wall clamp, full population)
that place balls and optionally simulate them to rest.
"""

import random
import numpy as np
from physics import Ball, PhysicsEngine, BALL_RADIUS

SURFACE = (800.0, 600.0)
MAX_STEPS = 2000


def _track_apexes(ball: Ball, prev_vy: float, apexes: list) -> float:
    """Record y at each top of flight (vy turning from up to down)."""
    vy = float(ball.velocity[1])
    if prev_vy < 0 <= vy:
        apexes.append(float(ball.position[1]))
    return vy


class ScenarioPreset:
    """Each preset places balls → (optionally) simulates → returns a result dict."""

    @staticmethod
    def scenario_1_drop(run=True) -> dict:
        """Single ball released at rest from (100, 100): bounces, settles, sleeps."""
        engine = PhysicsEngine()
        width, height = SURFACE
        ball = Ball(1, position=[100.0, 100.0], velocity=[0.0, 0.0])
        balls = [ball]

        steps = 0
        first_contact = None
        slept_at = None
        apexes: list = []
        if run:
            prev_vy = 0.0
            while steps < MAX_STEPS and not ball.is_sleeping:
                engine.update(balls, width, height)
                steps += 1
                if first_contact is None and ball.floor_hits:
                    first_contact = steps
                prev_vy = _track_apexes(ball, prev_vy, apexes)
            if ball.is_sleeping:
                slept_at = steps
        return {"ball": ball, "balls": balls, "engine": engine, "surface": SURFACE,
                "steps": steps, "first_contact": first_contact,
                "apexes": apexes, "slept_at": slept_at}

    @staticmethod
    def scenario_2_wall(run=True) -> dict:
        """Ball placed beyond the left wall, moving left: first step clamps it."""
        engine = PhysicsEngine()
        width, height = SURFACE
        ball = Ball(1, position=[-50.0, 300.0], velocity=[-4.0, 0.0])
        balls = [ball]

        steps = 0
        if run:
            steps = engine.simulate(balls, width, height, max_steps=MAX_STEPS)
        return {"ball": ball, "balls": balls, "engine": engine, "surface": SURFACE,
                "steps": steps}

    @staticmethod
    def scenario_3_crowd(count: int = 50, seed: int = 7, run=True) -> dict:
        """A full court: `count` balls in a grid above the floor with seeded jitter."""
        engine = PhysicsEngine()
        width, height = SURFACE
        rng = random.Random(seed)

        cols = max(1, int(width // (BALL_RADIUS * 4)))
        balls = []
        for i in range(count):
            row, col = divmod(i, cols)
            x = BALL_RADIUS * 2 + col * BALL_RADIUS * 4
            y = 60.0 + row * BALL_RADIUS * 4
            b = Ball(i + 1,
                     position=np.array([x, y]),
                     velocity=np.array([rng.uniform(-5.0, 5.0), rng.uniform(-5.0, 0.0)]),
                     rotation=rng.uniform(0.0, 2 * np.pi),
                     rotation_speed=rng.uniform(-0.2, 0.2))
            balls.append(b)

        steps = 0
        if run:
            steps = engine.simulate(balls, width, height, max_steps=MAX_STEPS)
        return {"balls": balls, "engine": engine, "surface": SURFACE, "steps": steps}


SCENARIOS = {
    "1": (ScenarioPreset.scenario_1_drop,  "1: Drop"),
    "2": (ScenarioPreset.scenario_2_wall,  "2: Wall clamp"),
    "3": (ScenarioPreset.scenario_3_crowd, "3: Full court"),
}
