"""
Mini-Golf Web Server: Layer 3 (FastAPI + WebSocket)

Serves the Three.js frontend and runs the frame loop. The browser casts
pointer rays from its camera and sends them here; ball state goes back to
every client once per frame.
"""

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from controller import MiniGolfController
import physics as _phys
import shot_input as _shot

logger = logging.getLogger(__name__)

# ── Controller ──────────────────────────────────────────────────────────────

ctrl = MiniGolfController()


# ── Lifespan (startup/shutdown) ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    task = asyncio.create_task(game_loop())
    yield
    task.cancel()


app = FastAPI(lifespan=lifespan)

clients: list[WebSocket] = []

# ── Tunable params (module, attr, label, min, max, step) ────────────────────

PHYSICS_PARAMS = [
    (_phys,  "FRICTION_K",  "Friction",     0.1,  10.0, 0.1),
    (_phys,  "STOP_EPS",    "Stop Speed",   0.0,   1.0, 0.01),
    (_phys,  "REST_EPS",    "Rest Speed",   0.0,   0.5, 0.005),
    (_shot,  "POWER_SCALE", "Power",        1.0, 100.0, 0.5),
    (_shot,  "MIN_DRAG",    "Min Drag",     0.0,   1.0, 0.01),
    (_shot,  "MAX_DRAG",    "Aim Clamp",    0.1,  10.0, 0.1),
]

PARAM_DEFAULTS = {attr: getattr(mod, attr) for mod, attr, *_ in PHYSICS_PARAMS}

# ── Async game loop ─────────────────────────────────────────────────────────

TARGET_FPS = 60
FRAME_DT = 1.0 / TARGET_FPS
MAX_FRAME_DT = 0.05


async def _broadcast(text: str) -> None:
    for ws in list(clients):
        try:
            await ws.send_text(text)
        except Exception as exc:
            logger.debug("[WS] dropping client: %s", exc)
            if ws in clients:
                clients.remove(ws)


async def game_loop():
    """Step the controller at ~60 fps and push a frame to every client."""
    last = time.perf_counter()
    while True:
        now = time.perf_counter()
        # a stalled loop (tab in background) resumes with at most MAX_FRAME_DT
        ctrl.step(min(max(now - last, 0.0), MAX_FRAME_DT))
        last = now
        if clients:
            await _broadcast(_build_frame_message())
        await asyncio.sleep(max(0.0, FRAME_DT - (time.perf_counter() - now)))


def _build_frame_message() -> str:
    """Serialize current state into a JSON frame message and drain events."""
    frame = {
        "type": "frame",
        "ball": ctrl.get_state(),
        "events": list(ctrl.pending_events),
        "status": ctrl.status_msg,
    }
    ctrl.pending_events.clear()
    return json.dumps(frame, separators=(',', ':'))


def _build_init_message() -> str:
    return json.dumps({
        "type": "init",
        "course": ctrl.course.to_dict(),
        "frame_dt": FRAME_DT,
        "win_speed": ctrl.WIN_SPEED,
        "max_drag": _shot.MAX_DRAG,
        "ground_y": _phys.GROUND_Y,
    })


# ── Input handlers ──────────────────────────────────────────────────────────

def _ray(msg: dict):
    """Return (origin, dir) from a pointer message, or (None, None)."""
    origin = msg.get("origin")
    direction = msg.get("dir")
    if origin is None or direction is None:
        return None, None
    try:
        return [float(v) for v in origin[:3]], [float(v) for v in direction[:3]]
    except (TypeError, ValueError):
        return None, None


def _handle_pointer(cmd: str, msg: dict) -> None:
    origin, direction = _ray(msg)
    if cmd == "pointer_down":
        pan = bool(msg.get("pan", False))
        if origin is None and not pan:
            return
        ctrl.pointer_down(origin, direction, pan=pan)
    elif cmd == "pointer_move":
        if origin is not None:
            ctrl.pointer_move(origin, direction)
    elif cmd == "pointer_up":
        ctrl.pointer_up(origin, direction)


def _handle_key_down(key: str) -> None:
    """Handle a key press event from the client."""
    if key == "r":
        ctrl.reset()
    elif key.isdigit() and key != "0":
        ctrl.select_course(int(key) - 1)


# ── Params helpers ──────────────────────────────────────────────────────────

def _get_params_data() -> list:
    """Return all tunable params with current values."""
    result = []
    for mod, attr, label, mn, mx, step in PHYSICS_PARAMS:
        result.append({
            "attr": attr, "label": label,
            "value": round(getattr(mod, attr), 6),
            "min": mn, "max": mx, "step": step,
        })
    return result


def _adjust_param(idx: int, direction: int, fine: bool = False):
    """Nudge one param by its step; returns the new value or None."""
    if not 0 <= idx < len(PHYSICS_PARAMS):
        return None
    mod, attr, label, mn, mx, step = PHYSICS_PARAMS[idx]
    s = step / 10.0 if fine else step
    new_val = max(mn, min(mx, getattr(mod, attr) + direction * s))
    setattr(mod, attr, new_val)
    return new_val


def _reset_params() -> None:
    for mod, attr, *_ in PHYSICS_PARAMS:
        setattr(mod, attr, PARAM_DEFAULTS[attr])


def _params_message() -> str:
    return json.dumps({"type": "params", "data": _get_params_data()})


# ── WebSocket endpoint ──────────────────────────────────────────────────────

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    clients.append(ws)

    await ws.send_text(_build_init_message())

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
            if cmd in ("pointer_down", "pointer_move", "pointer_up"):
                _handle_pointer(cmd, msg)
            elif cmd == "key_down":
                _handle_key_down(str(msg.get("key", "")))
                if ctrl.pending_events and ctrl.pending_events[-1]["type"] == "course_loaded":
                    await ws.send_text(_build_init_message())
            elif cmd == "get_params":
                await ws.send_text(_params_message())
            elif cmd == "adjust_param":
                try:
                    idx = int(msg.get("index", 0))
                    direction = int(msg.get("direction", 0))
                except (TypeError, ValueError):
                    continue
                new_val = _adjust_param(idx, direction, bool(msg.get("fine", False)))
                if new_val is not None:
                    await ws.send_text(json.dumps({
                        "type": "param_update",
                        "index": idx,
                        "value": round(new_val, 6),
                    }))
            elif cmd == "reset_params":
                _reset_params()
                await ws.send_text(_params_message())
    except WebSocketDisconnect:
        pass
    finally:
        if ws in clients:
            clients.remove(ws)


# ── Static files + root route ───────────────────────────────────────────────

app.mount("/static", StaticFiles(directory="static", check_dir=False), name="static")


@app.get("/")
async def root():
    return FileResponse("static/index.html")


# ── Run with uvicorn ────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(message)s")
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=False)
