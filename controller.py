"""
CourtController — Layer 2 (Simulation State)

Owns the live ball collection, the surface size and all mutation of both.
Front ends (server.py / main.py) talk to it through:
  ctrl.spawn(x, y)            — click-to-spawn
  ctrl.resize(w, h)           — surface size changes
  ctrl.step()                 — one physics step + population cap
  ctrl.snapshot()             — ordered, read-only view for the renderer
  ctrl.pending_events         — spawn/clear notifications for the front end
  ctrl.physics_events         — floor/wall/sleep events of the last step
"""

import math
import json
import random
import time
from dataclasses import dataclass
import numpy as np

from physics import PhysicsEngine, Ball
import physics as _phys


@dataclass
class Surface:
    """Drawing-surface size in pixels."""
    width: float
    height: float


# ── Default info-bar message ───────────────────────────────────────────────────
DEFAULT_INFO_MSG = "[Click] Spawn ball  [R] Reset  [1-3] Scenario"

# Physics constants the `set` command may change (mirrors server PHYSICS_PARAMS)
EDITABLE_PARAMS = {
    "GRAVITY", "RESTITUTION", "FRICTION_AIR", "FRICTION_GROUND",
    "VELOCITY_DAMPING", "WALL_RESTITUTION", "SPIN_DAMPING", "SLEEP_SPEED",
}


class CourtController:
    """Layer 2: ball collection owner + per-frame step."""

    # ── Class-level constants ─────────────────────────────────────────────────
    MAX_BALLS          = 50
    INITIAL_BALLS      = 3
    DEFAULT_SURFACE    = (800.0, 600.0)

    # Spawn randomness ranges
    SPAWN_VX           = (-5.0, 5.0)
    SPAWN_VY           = (-5.0, 0.0)    # neutral or upward pop
    SPAWN_SPIN         = (-0.2, 0.2)
    SEED_JITTER_X      = (-100.0, 100.0)
    SEED_VX            = (-2.0, 2.0)
    SEED_SPIN          = (-0.1, 0.1)
    SEED_TOP           = -100.0
    SEED_STAGGER       = 100.0

    # ── Constructor ───────────────────────────────────────────────────────────

    def __init__(self, rng=None, seed: int | None = None,
                 width: float | None = None, height: float | None = None):
        self.balls: list[Ball] = []
        self.engine = PhysicsEngine()
        self.rng = rng if rng is not None else random.Random(seed)

        w, h = self.DEFAULT_SURFACE
        self.surface: Surface | None = Surface(
            float(width if width is not None else w),
            float(height if height is not None else h),
        )
        self._last_id = 0

        # Status / info messages (front ends mirror these)
        self.status_msg = ""
        self.info_msg   = DEFAULT_INFO_MSG

        # Event queues
        self.pending_events: list[dict] = []   # front-end notifications
        self.physics_events: list[dict] = []   # floor / wall / sleep

    # ──────────────────────────────────────────────────────────────────────────
    # Ids
    # ──────────────────────────────────────────────────────────────────────────

    def _new_id(self, index: int = 0) -> int:
        """Creation timestamp (ns) + batch index, strictly increasing."""
        candidate = time.time_ns() + index
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return candidate

    def _add(self, ball: Ball) -> Ball:
        self.balls.append(ball)
        self.pending_events.append({"type": "spawn_ball", "ball": ball})
        return ball

    # ──────────────────────────────────────────────────────────────────────────
    # Spawning
    # ──────────────────────────────────────────────────────────────────────────

    def spawn(self, x: float, y: float) -> Ball:
        """Create one ball at (x, y) exactly as given; the next step clamps it."""
        rng = self.rng
        ball = Ball(
            self._new_id(),
            position=[float(x), float(y)],
            velocity=[rng.uniform(*self.SPAWN_VX), rng.uniform(*self.SPAWN_VY)],
            rotation=rng.uniform(0.0, 2 * math.pi),
            rotation_speed=rng.uniform(*self.SPAWN_SPIN),
        )
        return self._add(ball)

    def seed_initial(self, count: int, viewport_width: float) -> None:
        """Drop `count` balls from above the visible area, staggered in height."""
        rng = self.rng
        base_id = self._new_id()
        for i in range(count):
            ball = Ball(
                base_id + i,
                position=[viewport_width / 2 + rng.uniform(*self.SEED_JITTER_X),
                          self.SEED_TOP - i * self.SEED_STAGGER],
                velocity=[rng.uniform(*self.SEED_VX), 0.0],
                rotation=rng.uniform(0.0, 2 * math.pi),
                rotation_speed=rng.uniform(*self.SEED_SPIN),
            )
            self._last_id = max(self._last_id, ball.id)
            self._add(ball)
        print(f"[CTRL] seeded {count} balls  width={viewport_width:.0f}")

    # ──────────────────────────────────────────────────────────────────────────
    # Main loop
    # ──────────────────────────────────────────────────────────────────────────

    def step(self, width: float | None = None, height: float | None = None) -> None:
        """Advance awake balls one step, then evict the oldest beyond MAX_BALLS."""
        if width is None or height is None:
            if self.surface is None:
                return
            width, height = self.surface.width, self.surface.height

        self.engine.update(self.balls, width, height)
        self.physics_events = list(self.engine.events)

        overflow = len(self.balls) - self.MAX_BALLS
        if overflow > 0:
            del self.balls[:overflow]

    def snapshot(self) -> tuple:
        """Ordered view of the collection for one frame of drawing."""
        return tuple(self.balls)

    # ──────────────────────────────────────────────────────────────────────────
    # Surface
    # ──────────────────────────────────────────────────────────────────────────

    def resize(self, width: float, height: float) -> None:
        """Use a new surface size from the next step on. Balls are not moved."""
        width, height = float(width), float(height)
        if not (width > 0 and height > 0):
            raise ValueError(f"resize: surface must be positive, got {width}x{height}")
        if self.surface is None:
            self.surface = Surface(width, height)
        else:
            self.surface.width, self.surface.height = width, height

    def detach_surface(self) -> None:
        """Render target torn down; a running scheduler stops on its next tick."""
        self.surface = None

    # ──────────────────────────────────────────────────────────────────────────
    # Ball management
    # ──────────────────────────────────────────────────────────────────────────

    def clear_balls(self) -> None:
        self.balls.clear()
        self.pending_events.append({"type": "clear_balls"})

    def reset(self, count: int | None = None) -> None:
        """Clear the court and drop a fresh initial batch."""
        self.clear_balls()
        self.engine = PhysicsEngine()
        width = self.surface.width if self.surface is not None else self.DEFAULT_SURFACE[0]
        self.seed_initial(self.INITIAL_BALLS if count is None else count, width)
        self.info_msg   = DEFAULT_INFO_MSG
        self.status_msg = "Click anywhere on the court to spawn a ball."

    def load_scenario(self, scenario_fn, label: str) -> None:
        """Replace the court with a preset scene (keys 1-3)."""
        self.clear_balls()
        result = scenario_fn(run=False)
        self.engine = result["engine"]
        width, height = result["surface"]
        self.resize(width, height)
        for ball in result["balls"]:
            self._last_id = max(self._last_id, ball.id)
            self._add(ball)
        self.info_msg   = f"Scenario {label}"
        self.status_msg = "Running..."
        print(f"[CTRL] scenario {label}  balls={len(self.balls)}")

    # ──────────────────────────────────────────────────────────────────────────
    # Command panel
    # ──────────────────────────────────────────────────────────────────────────

    def get_state_json(self) -> str:
        """Return the current court as compact single-line set-command JSON."""
        balls = []
        for b in self.balls:
            balls.append({
                "id":    b.id,
                "pos":   [round(float(b.position[0]), 3), round(float(b.position[1]), 3)],
                "vel":   [round(float(b.velocity[0]), 4), round(float(b.velocity[1]), 4)],
                "rot":   round(b.rotation, 4),
                "spin":  round(b.rotation_speed, 4),
                "sleep": b.is_sleeping,
            })
        surface = None
        if self.surface is not None:
            surface = [self.surface.width, self.surface.height]
        return json.dumps({"cmd": "set", "surface": surface, "balls": balls},
                          separators=(',', ':'))

    def execute_command(self, text: str) -> None:
        """Parse a JSON command string and dispatch to handlers."""
        if not text:
            print("[CMD] execute_command: empty text")
            return
        text = text.replace('\r', '')
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            print(f"[CMD] JSON parse error: {exc}")
            self.status_msg = f"JSON error: {exc}"
            return
        if not isinstance(data, dict):
            self.status_msg = "Command must be a JSON object."
            return
        cmd = str(data.get("cmd", "")).lower().strip()
        print(f"[CMD] cmd={cmd}")
        if cmd == "spawn":
            self._cmd_spawn(data)
        elif cmd == "set":
            self._cmd_set(data)
        elif cmd == "clear":
            self.clear_balls()
            self.status_msg = "clear: court emptied."
        else:
            self.status_msg = f"Unknown cmd '{cmd}'. Use spawn/set/clear."

    def _cmd_spawn(self, data: dict) -> None:
        try:
            x, y = float(data["x"]), float(data["y"])
        except (KeyError, TypeError, ValueError):
            self.status_msg = "spawn: numeric 'x' and 'y' required."
            return
        ball = self.spawn(x, y)
        self.status_msg = f"spawn: ball {ball.id} at ({x:.0f},{y:.0f})"

    def _cmd_set(self, data: dict) -> None:
        """set: place balls with explicit kinematics OR update physics params.

        A `surface` field ([w, h], as emitted by get_state_json) resizes the
        court first. Ball entries that are not well-formed are skipped.
        """
        params_data = data.get("params")
        if params_data is not None:
            self._cmd_params(params_data)
            return

        balls_data = data.get("balls")
        if not balls_data or not isinstance(balls_data, list):
            self.status_msg = "set: 'balls' list or 'params' object required."
            return

        surface = data.get("surface")
        if surface is not None:
            try:
                self.resize(*_pair(surface))
            except (TypeError, ValueError) as exc:
                self.status_msg = f"set: bad surface {surface!r} ({exc})"
                return

        live_ids = {b.id for b in self.balls}
        added, skipped = [], 0
        for bd in balls_data:
            try:
                ball = self._ball_from_dict(bd, live_ids)
            except (TypeError, ValueError) as exc:
                print(f"[CMD]   set skipped {bd!r}: {exc}")
                skipped += 1
                continue
            live_ids.add(ball.id)
            self._add(ball)
            added.append(ball.id)
        print(f"[CMD]   set added={len(added)} skipped={skipped}")
        self.status_msg = f"set: {len(added)} balls placed."
        if skipped:
            self.status_msg += f"  ({skipped} malformed skipped)"

    def _ball_from_dict(self, bd, live_ids: set) -> Ball:
        """One `balls` entry of a set command -> Ball. Raises TypeError/ValueError."""
        if not isinstance(bd, dict):
            raise TypeError("ball entry must be an object")
        x, y = _pair(bd.get("pos"))
        vx, vy = _pair(bd.get("vel", [0.0, 0.0]))
        rotation = float(bd.get("rot", 0.0))
        rotation_speed = float(bd.get("spin", 0.0))

        # Keep a saved id when it is still free
        ball_id = bd.get("id")
        if isinstance(ball_id, int) and not isinstance(ball_id, bool) \
                and ball_id > 0 and ball_id not in live_ids:
            self._last_id = max(self._last_id, ball_id)
        else:
            ball_id = self._new_id()
        return Ball(
            ball_id,
            position=np.array([x, y]),
            velocity=np.array([vx, vy]),
            rotation=rotation,
            rotation_speed=rotation_speed,
            is_sleeping=bool(bd.get("sleep", False)),
        )

    def _cmd_params(self, params) -> None:
        """set params: update physics module constants by name."""
        if not isinstance(params, dict):
            self.status_msg = "set: 'params' must be an object of NAME: value."
            return
        updated, skipped = [], []
        for k, v in params.items():
            if k in EDITABLE_PARAMS and hasattr(_phys, k):
                try:
                    setattr(_phys, k, float(v))
                    updated.append(f"{k}={float(v):.4g}")
                except (TypeError, ValueError) as e:
                    print(f"[CMD] setattr {k} failed: {e}")
                    skipped.append(k)
            else:
                skipped.append(k)

        msg = f"params: set {updated}"
        if skipped:
            msg += f"  (unknown: {skipped})"
        print(f"[CMD] {msg}")
        self.status_msg = msg


def _pair(value) -> tuple:
    """[a, b] -> (float(a), float(b)). Raises TypeError/ValueError otherwise."""
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"expected a 2-element list, got {value!r}")
    return float(value[0]), float(value[1])
