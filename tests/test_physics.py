"""
Physics Engine Tests — per-step integration, floor/wall response, sleep.

All tests use an 800x600 surface unless stated otherwise.
"""

import sys
import os
import math
import random
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from physics import (
    Ball, PhysicsEngine, BALL_RADIUS,
    GRAVITY, FRICTION_AIR, FRICTION_GROUND, RESTITUTION, WALL_RESTITUTION,
    SPIN_DAMPING,
)

W, H = 800.0, 600.0
FLOOR_Y = H - BALL_RADIUS


def resting_ball(vx=0.0, vy=-0.5, ball_id=1):
    """Ball sitting exactly on the floor."""
    return Ball(ball_id, position=[400.0, FLOOR_Y], velocity=[vx, vy])


# ── Integration ──────────────────────────────────────────

class TestIntegration:

    def test_free_flight_order(self):
        """Gravity first, then drag on both axes, then position."""
        ball = Ball(1, position=[100.0, 100.0], velocity=[2.0, -3.0],
                    rotation=1.0, rotation_speed=0.1)
        PhysicsEngine().update([ball], W, H)

        vx = 2.0 * FRICTION_AIR
        vy = (-3.0 + GRAVITY) * FRICTION_AIR
        assert ball.velocity[0] == pytest.approx(vx)
        assert ball.velocity[1] == pytest.approx(vy)
        assert ball.position[0] == pytest.approx(100.0 + vx)
        assert ball.position[1] == pytest.approx(100.0 + vy)
        assert ball.rotation == pytest.approx(1.1)

    def test_rotation_is_free_running(self):
        """Spin accumulates without wrapping."""
        ball = Ball(1, position=[400.0, -5000.0], rotation_speed=0.2)
        engine = PhysicsEngine()
        for _ in range(100):
            engine.update([ball], W, H)
        assert ball.rotation == pytest.approx(20.0)
        assert ball.rotation > 2 * math.pi

    def test_airborne_ball_emits_no_events(self):
        engine = PhysicsEngine()
        engine.update([Ball(1, position=[400.0, 100.0])], W, H)
        assert engine.events == []


# ── Floor ────────────────────────────────────────────────

class TestFloorCollision:

    def test_bounce_clamps_and_reflects(self):
        ball = Ball(1, position=[400.0, FLOOR_Y - 1.0], velocity=[3.0, 10.0],
                    rotation_speed=0.2)
        engine = PhysicsEngine()
        engine.update([ball], W, H)

        vy_in = (10.0 + GRAVITY) * FRICTION_AIR
        assert ball.position[1] == FLOOR_Y
        assert ball.velocity[1] == pytest.approx(-vy_in * RESTITUTION)
        assert ball.velocity[0] == pytest.approx(3.0 * FRICTION_AIR * FRICTION_GROUND)
        assert ball.rotation_speed == pytest.approx(0.2 * SPIN_DAMPING)
        assert ball.floor_hits == 1
        assert engine.events[0]["type"] == "floor"
        assert engine.events[0]["speed"] == pytest.approx(vy_in)

    def test_velocity_floor_snap(self):
        """A post-bounce |vy| inside (0, 0.1) becomes exactly 0 on the same step."""
        ball = resting_ball(vx=5.0, vy=-0.5)
        PhysicsEngine().update([ball], W, H)

        # raw bounce would have been about -0.078
        assert ball.velocity[1] == 0.0
        assert not ball.is_sleeping   # still rolling sideways

    def test_sleep_after_snap_when_slow(self):
        ball = resting_ball(vx=0.0, vy=-0.5)
        engine = PhysicsEngine()
        engine.update([ball], W, H)

        assert ball.velocity[1] == 0.0
        assert ball.is_sleeping
        assert {"type": "sleep", "ball": 1} in engine.events

    def test_no_snap_above_threshold(self):
        ball = resting_ball(vx=0.0, vy=0.0)
        PhysicsEngine().update([ball], W, H)
        assert ball.velocity[1] == pytest.approx(-GRAVITY * FRICTION_AIR * RESTITUTION)
        assert not ball.is_sleeping

    def test_sleeping_ball_is_untouched(self):
        ball = Ball(1, position=[200.0, 300.0], velocity=[1.0, 2.0],
                    rotation=0.5, rotation_speed=0.1, is_sleeping=True)
        pos, vel = ball.position.copy(), ball.velocity.copy()
        engine = PhysicsEngine()
        for _ in range(50):
            engine.update([ball], W, H)

        np.testing.assert_array_equal(ball.position, pos)
        np.testing.assert_array_equal(ball.velocity, vel)
        assert ball.rotation == 0.5
        assert ball.is_sleeping


# ── Walls ────────────────────────────────────────────────

class TestWallCollision:

    def test_left_wall(self):
        ball = Ball(1, position=[16.0, 100.0], velocity=[-4.0, 0.0])
        engine = PhysicsEngine()
        engine.update([ball], W, H)

        assert ball.position[0] == BALL_RADIUS
        assert ball.velocity[0] == pytest.approx(4.0 * FRICTION_AIR * WALL_RESTITUTION)
        assert engine.events[-1]["side"] == "left"

    def test_right_wall(self):
        ball = Ball(1, position=[W - 16.0, 100.0], velocity=[4.0, 0.0])
        engine = PhysicsEngine()
        engine.update([ball], W, H)

        assert ball.position[0] == W - BALL_RADIUS
        assert ball.velocity[0] == pytest.approx(-4.0 * FRICTION_AIR * WALL_RESTITUTION)
        assert engine.events[-1]["side"] == "right"

    def test_wall_checked_on_floor_contact_step(self):
        """Floor and wall responses can both fire in the same step."""
        ball = Ball(1, position=[W - 16.0, FLOOR_Y - 1.0], velocity=[4.0, 5.0])
        engine = PhysicsEngine()
        engine.update([ball], W, H)

        assert ball.position[0] == W - BALL_RADIUS
        assert ball.position[1] == FLOOR_Y
        assert [e["type"] for e in engine.events] == ["floor", "wall"]

    def test_outside_spawn_clamped_next_step(self):
        ball = Ball(1, position=[-50.0, 300.0], velocity=[3.0, 0.0])
        PhysicsEngine().update([ball], W, H)
        assert ball.position[0] >= BALL_RADIUS


# ── Invariants ───────────────────────────────────────────

class TestInvariants:

    def _random_balls(self, n=40, seed=3):
        rng = random.Random(seed)
        return [
            Ball(i, position=[rng.uniform(-100, W + 100), rng.uniform(-300, H + 50)],
                 velocity=[rng.uniform(-15, 15), rng.uniform(-15, 5)],
                 rotation_speed=rng.uniform(-0.2, 0.2))
            for i in range(n)
        ]

    def test_containment_after_every_step(self):
        balls = self._random_balls()
        engine = PhysicsEngine()
        for _ in range(400):
            engine.update(balls, W, H)
            for b in balls:
                assert b.position[1] + BALL_RADIUS <= H
                assert b.position[0] - BALL_RADIUS >= 0
                assert b.position[0] + BALL_RADIUS <= W

    def test_sleep_is_monotone(self):
        balls = self._random_balls(seed=11)
        engine = PhysicsEngine()
        asleep: set = set()
        for _ in range(600):
            engine.update(balls, W, H)
            for b in balls:
                if b.id in asleep:
                    assert b.is_sleeping
                if b.is_sleeping:
                    asleep.add(b.id)

    def test_simulate_stops_when_all_sleep(self):
        ball = Ball(1, position=[100.0, 100.0])
        steps = PhysicsEngine().simulate([ball], W, H, max_steps=2000)
        assert ball.is_sleeping
        assert steps < 500

    def test_simulate_respects_max_steps(self):
        # sideways speed at the snap keeps it awake: it never sleeps
        ball = Ball(1, position=[400.0, 100.0], velocity=[3.0, 0.0])
        steps = PhysicsEngine().simulate([ball], W, H, max_steps=300)
        assert steps == 300
        assert ball.position[1] == FLOOR_Y
