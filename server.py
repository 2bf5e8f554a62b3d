"""
Clay Court Web Server — Layer 3 (FastAPI + WebSocket)

Serves the canvas frontend and runs the frame loop,
streaming ball state to browser clients over WebSocket.
"""

import io
import json
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse, Response
from fastapi.staticfiles import StaticFiles

from controller import CourtController
from physics import BALL_RADIUS
import physics as _phys
from renderer import render_frame, shadow_params
from scenarios import SCENARIOS
from scheduler import FrameScheduler, TARGET_FPS

STATIC_DIR = Path(__file__).parent / "static"

# ── Controller ──────────────────────────────────────────────────────────────

ctrl = CourtController()
scheduler: FrameScheduler | None = None


# ── Lifespan (startup/shutdown) ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    global scheduler
    ctrl.resize(*CourtController.DEFAULT_SURFACE)
    ctrl.reset()
    scheduler = FrameScheduler(ctrl.step, broadcast_frame, lambda: ctrl.surface)
    scheduler.start_async()
    yield
    scheduler.stop()


app = FastAPI(lifespan=lifespan)

# ── Client state ────────────────────────────────────────────────────────────

clients: list[WebSocket] = []

# ── Physics params (live editor) ────────────────────────────────────────────

PHYSICS_PARAMS = [
    ("GRAVITY",          "Gravity",        0.05,  3.0,   0.05),
    ("RESTITUTION",      "Bounce",         0.0,   1.0,   0.01),
    ("FRICTION_AIR",     "Air Drag",       0.9,   1.0,   0.001),
    ("FRICTION_GROUND",  "Clay Drag",      0.5,   1.0,   0.01),
    ("VELOCITY_DAMPING", "Stop Thresh.",   0.0,   1.0,   0.01),
    ("WALL_RESTITUTION", "Wall Bounce",    0.0,   1.0,   0.01),
    ("SPIN_DAMPING",     "Spin Keep",      0.5,   1.0,   0.01),
    ("SLEEP_SPEED",      "Sleep Speed",    0.0,   1.0,   0.01),
]

PARAM_DEFAULTS = {attr: getattr(_phys, attr) for attr, *_ in PHYSICS_PARAMS}


# ── Frame broadcast ─────────────────────────────────────────────────────────

async def broadcast_frame(surface) -> None:
    """Render consumer: send the current court to every client."""
    frame_msg = _build_frame_message(surface.height)
    dead: list[WebSocket] = []
    for ws in clients:
        try:
            await ws.send_text(frame_msg)
        except Exception:
            dead.append(ws)
    for ws in dead:
        if ws in clients:
            clients.remove(ws)


def _build_frame_message(surface_height: float) -> str:
    """Serialize current state into a JSON frame message."""
    balls_data = []
    for b in ctrl.snapshot():
        shadow = shadow_params(b, surface_height)
        balls_data.append({
            "id": b.id,
            "pos": [round(float(b.position[0]), 2),
                    round(float(b.position[1]), 2)],
            "rot": round(b.rotation, 4),
            "sleeping": b.is_sleeping,
            "shadow": [round(v, 3) for v in shadow] if shadow else None,
        })

    # Front-end notifications are not needed by the canvas client; drain them
    ctrl.pending_events.clear()

    # Bounce sounds
    sounds = []
    for ev in ctrl.physics_events:
        if ev.get("type") in ("floor", "wall"):
            sounds.append({
                "type": ev["type"],
                "speed": round(float(ev.get("speed", 0.0)), 3),
            })

    surface = ctrl.surface
    frame = {
        "type": "frame",
        "surface": [surface.width, surface.height] if surface is not None else None,
        "balls": balls_data,
        "sounds": sounds,
        "status": ctrl.status_msg,
        "info": ctrl.info_msg,
    }
    return json.dumps(frame, separators=(',', ':'))


# ── Input handlers ──────────────────────────────────────────────────────────

def _handle_spawn(msg: dict) -> None:
    try:
        x, y = float(msg["x"]), float(msg["y"])
    except (KeyError, TypeError, ValueError):
        print(f"[WS] bad spawn message: {msg}")
        return
    ctrl.spawn(x, y)


def _handle_resize(msg: dict) -> None:
    try:
        ctrl.resize(float(msg["width"]), float(msg["height"]))
    except (KeyError, TypeError, ValueError) as exc:
        print(f"[WS] resize ignored: {exc}")


def _handle_key_down(key: str) -> None:
    if key == "r":
        ctrl.reset()
    elif key in SCENARIOS:
        fn, label = SCENARIOS[key]
        ctrl.load_scenario(fn, label)


def _get_params_data() -> list:
    """Return all physics params with current values."""
    result = []
    for attr, label, mn, mx, step in PHYSICS_PARAMS:
        result.append({
            "attr": attr, "label": label,
            "value": round(getattr(_phys, attr), 6),
            "min": mn, "max": mx, "step": step,
        })
    return result


# ── WebSocket endpoint ──────────────────────────────────────────────────────

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()

    surface = ctrl.surface
    await ws.send_text(json.dumps({
        "type": "init",
        "ball_radius": BALL_RADIUS,
        "surface": [surface.width, surface.height] if surface is not None else None,
        "max_balls": ctrl.MAX_BALLS,
        "fps": TARGET_FPS,
    }))
    clients.append(ws)

    try:
        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue
            if not isinstance(msg, dict):
                continue

            cmd = msg.get("cmd", "")
            if cmd == "spawn":
                _handle_spawn(msg)
            elif cmd == "resize":
                _handle_resize(msg)
            elif cmd == "key_down":
                _handle_key_down(str(msg.get("key", "")))
            elif cmd == "execute":
                ctrl.execute_command(msg.get("text", ""))
            elif cmd == "get_state":
                await ws.send_text(json.dumps({
                    "type": "state_json",
                    "data": ctrl.get_state_json(),
                }))
            elif cmd == "get_params":
                await ws.send_text(json.dumps({
                    "type": "params",
                    "data": _get_params_data(),
                }))
            elif cmd == "adjust_param":
                idx = int(msg.get("index", 0))
                direction = int(msg.get("direction", 0))
                fine = msg.get("fine", False)
                if 0 <= idx < len(PHYSICS_PARAMS):
                    attr, label, mn, mx, step = PHYSICS_PARAMS[idx]
                    s = step / 10.0 if fine else step
                    cur = getattr(_phys, attr)
                    new_val = max(mn, min(mx, cur + direction * s))
                    setattr(_phys, attr, new_val)
                    await ws.send_text(json.dumps({
                        "type": "param_update",
                        "index": idx,
                        "value": round(new_val, 6),
                    }))
            elif cmd == "reset_params":
                for attr, dflt in PARAM_DEFAULTS.items():
                    setattr(_phys, attr, dflt)
                await ws.send_text(json.dumps({
                    "type": "params",
                    "data": _get_params_data(),
                }))
    except WebSocketDisconnect:
        pass
    finally:
        if ws in clients:
            clients.remove(ws)


# ── HTTP routes ─────────────────────────────────────────────────────────────

app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")


@app.get("/")
async def root():
    return FileResponse(STATIC_DIR / "index.html")


@app.get("/state")
async def state():
    return Response(ctrl.get_state_json(), media_type="application/json")


@app.get("/snapshot.png")
async def snapshot():
    """Current court drawn server-side with PIL."""
    surface = ctrl.surface
    if surface is None:
        return Response(status_code=503)
    img = render_frame(ctrl.snapshot(), surface.width, surface.height)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return Response(buf.getvalue(), media_type="image/png")


# ── Run with uvicorn ────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=False)
