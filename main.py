"""
Clay Court Ball Drop -- desktop front end (Ursina)
Layer 3: Ursina window, sprites, input and sound.
Layer 2: controller.py (CourtController) + scheduler.py (FrameScheduler)
Layer 1: physics.py (PhysicsEngine)

Click to drop a ball, R to reset, 1-3 for scenarios, Esc to quit.
"""

import math
import tempfile
import wave
import os
from pathlib import Path
import numpy as np
from ursina import (
    Ursina, Entity, Text, Texture, Audio, camera, color, window,
    mouse, application, destroy,
)

from controller import CourtController, DEFAULT_INFO_MSG
from physics import BALL_RADIUS
from renderer import render_court, render_ball_sprite, shadow_params
from scenarios import SCENARIOS
from scheduler import FrameScheduler

# ── Layer 2: controller + scheduler ───────────────────────────────────────────
ctrl = CourtController()

_asset_dir = tempfile.mkdtemp(prefix="claycourt_")

# ──────────────────────────────────────────
# Synthesized bounce sound (numpy + wave)
# ──────────────────────────────────────────

def _synth_wav(filename, samples):
    """Write mono 16-bit 44100Hz WAV and return Path object."""
    path = os.path.join(_asset_dir, filename)
    data = np.clip(samples, -1.0, 1.0)
    data_int = (data * 32767).astype(np.int16)
    with wave.open(path, "w") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(44100)
        wf.writeframes(data_int.tobytes())
    return Path(path)


def _synth_thud():
    """Short low pop of a tennis ball on clay."""
    sr = 44100; dur = 0.09
    t = np.linspace(0, dur, int(sr * dur), endpoint=False)
    env = np.exp(-t * 55)
    sig = env * np.sin(2 * np.pi * 180 * t + 3 * np.sin(2 * np.pi * 60 * t))
    return _synth_wav("thud.wav", sig * 0.8)


BOUNCE_SOUND_MIN_SPEED = 2.0   # px/step; softer contacts stay silent
BOUNCE_SOUND_FULL_SPEED = 20.0

# ──────────────────────────────────────────
# Ursina App
# ──────────────────────────────────────────

app = Ursina(borderless=False, title="Clay Court Ball Drop", size=(1280, 800))
window.color = color.black

thud_path = _synth_thud()
snd_thud = None

# ── Court / ball textures (PIL → png → Texture) ───────────────────────────────
_sprite_path = os.path.join(_asset_dir, "ball.png")
render_ball_sprite(BALL_RADIUS, scale=8).save(_sprite_path)
ball_texture = Texture(_sprite_path)

court_entity = Entity(parent=camera.ui, model="quad", z=1)
_court_size = (0, 0)

# ── Ball entities (L3 owns these) ─────────────────────────────────────────────
ball_entities: dict[int, tuple] = {}   # id -> (shadow, ball)

# ── UI ────────────────────────────────────────────────────────────────────────
info_text = Text(
    text=DEFAULT_INFO_MSG,
    position=(-0.85, 0.47),
    scale=1.1,
    color=color.white,
)

status_text = Text(
    text="",
    position=(-0.85, 0.43),
    scale=0.9,
    color=color.yellow,
)


# ──────────────────────────────────────────
# Pixel <-> UI space
# ──────────────────────────────────────────

def _to_ui(px, py, surface):
    """Surface pixels (y down) -> camera.ui units (y up, height 1)."""
    return ((px - surface.width / 2) / surface.height,
            (surface.height / 2 - py) / surface.height)


def _to_pixels(ux, uy, surface):
    return (ux * surface.height + surface.width / 2,
            surface.height / 2 - uy * surface.height)


# ──────────────────────────────────────────
# Helper functions (L3 only)
# ──────────────────────────────────────────

def _rebuild_court(surface):
    global _court_size
    size = (int(surface.width), int(surface.height))
    if size == _court_size:
        return
    path = os.path.join(_asset_dir, f"court_{size[0]}x{size[1]}.png")
    render_court(*size).save(path)
    court_entity.texture = Texture(path)
    court_entity.scale = (surface.width / surface.height, 1)
    _court_size = size


def _spawn_entities(ball_id):
    shadow = Entity(parent=camera.ui, model="circle", color=color.black, z=0.5)
    ent = Entity(parent=camera.ui, model="quad", texture=ball_texture, z=0)
    ball_entities[ball_id] = (shadow, ent)
    return shadow, ent


def _do_clear_balls():
    for shadow, ent in ball_entities.values():
        destroy(shadow)
        destroy(ent)
    ball_entities.clear()


def _play_bounce_sounds(events):
    fastest = max((ev["speed"] for ev in events if ev["type"] in ("floor", "wall")),
                  default=0.0)
    if snd_thud is None or fastest < BOUNCE_SOUND_MIN_SPEED:
        return
    snd_thud.volume = min(1.0, fastest / BOUNCE_SOUND_FULL_SPEED)
    snd_thud.play()


def render(surface):
    """Render consumer for the scheduler: sync sprites with the snapshot."""
    _rebuild_court(surface)
    snapshot = ctrl.snapshot()
    live = {b.id for b in snapshot}

    # Evicted balls
    for ball_id in [i for i in ball_entities if i not in live]:
        shadow, ent = ball_entities.pop(ball_id)
        destroy(shadow)
        destroy(ent)

    size = 2 * BALL_RADIUS / surface.height
    for b in snapshot:
        shadow, ent = ball_entities.get(b.id) or _spawn_entities(b.id)
        ent.position = _to_ui(float(b.position[0]), float(b.position[1]), surface)
        ent.scale = size
        ent.rotation_z = math.degrees(b.rotation)

        sp = shadow_params(b, surface.height)
        shadow.enabled = sp is not None
        if sp is not None:
            cx, cy, rx, ry, a = sp
            shadow.position = _to_ui(cx, cy, surface)
            shadow.scale = (2 * rx / surface.height, 2 * ry / surface.height)
            shadow.alpha = a

    _play_bounce_sounds(ctrl.physics_events)


scheduler = FrameScheduler(ctrl.step, render, lambda: ctrl.surface)


# ──────────────────────────────────────────
# Input handler
# ──────────────────────────────────────────

def input(key):
    if key == "escape":
        ctrl.detach_surface()
        scheduler.stop()
        application.quit()
        return

    if key == "left mouse down" and ctrl.surface is not None and mouse.position is not None:
        px, py = _to_pixels(mouse.position[0], mouse.position[1], ctrl.surface)
        ctrl.spawn(px, py)
        return

    if key == "r":
        ctrl.reset()
        return

    if key in SCENARIOS:
        fn, label = SCENARIOS[key]
        ctrl.load_scenario(fn, label)


# ──────────────────────────────────────────
# Update loop
# ──────────────────────────────────────────

def _load_sounds():
    global snd_thud
    if snd_thud is not None:
        return
    try:
        snd_thud = Audio(thud_path, autoplay=False)
    except Exception as exc:
        print(f"[SND] audio unavailable: {exc}")


def _sync_window_size():
    """Window resize -> controller surface (polled; balls are not moved)."""
    w, h = int(window.size[0]), int(window.size[1])
    surface = ctrl.surface
    if surface is None or w <= 0 or h <= 0:
        return
    if (w, h) != (int(surface.width), int(surface.height)):
        ctrl.resize(w, h)


def update():
    _load_sounds()
    _sync_window_size()

    # ── Controller notifications (L2 → L3) ────────────────────────────────────
    for ev in ctrl.pending_events:
        if ev["type"] == "clear_balls":
            _do_clear_balls()
    ctrl.pending_events.clear()

    # ── One step + one draw ───────────────────────────────────────────────────
    scheduler.tick()

    if info_text.text != ctrl.info_msg:
        info_text.text = ctrl.info_msg
    if status_text.text != ctrl.status_msg:
        status_text.text = ctrl.status_msg


# ──────────────────────────────────────────
# Run
# ──────────────────────────────────────────

if __name__ == "__main__":
    ctrl.resize(int(window.size[0]), int(window.size[1]))
    ctrl.reset()
    scheduler.start()
    app.run()
