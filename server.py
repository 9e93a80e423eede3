"""
Pool Web Server — Layer 3 (FastAPI + WebSocket)

Serves the canvas frontend and runs the physics loop,
streaming ball state to browser clients over WebSocket.
"""

import asyncio
import json
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse, Response
from fastapi.staticfiles import StaticFiles

from controller import PoolController
import physics as _phys
import session as _session
from audio import SOUND_CUES, cue_wav
from ticker import PacedTicker

STATIC_DIR = Path(__file__).parent / "static"

# ── Controller ──────────────────────────────────────────────────────────────

ctrl = PoolController()


# ── Lifespan (startup/shutdown) ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    task = asyncio.create_task(game_loop())
    yield
    task.cancel()


app = FastAPI(lifespan=lifespan)

clients: list[WebSocket] = []

# ── Physics params (live editor) ────────────────────────────────────────────

PHYSICS_PARAMS = [
    (_phys,    "DAMPING",         "Damping",         0.90,  0.999, 0.001),
    (_phys,    "STOP_THRESHOLD",  "Stop Thresh.",    0.001, 0.2,   0.005),
    (_phys,    "MOTION_EPSILON",  "Rest Epsilon",    0.001, 0.1,   0.001),
    (_phys,    "MAX_SPEED",       "Max Speed",       5.0,   60.0,  1.0),
    (_session, "POT_REWARD",      "Pot Reward",      0,     1000,  10),
    (_session, "SCRATCH_PENALTY", "Scratch Penalty", 0,     1000,  10),
]

PARAM_DEFAULTS = {attr: getattr(mod, attr) for mod, attr, *_ in PHYSICS_PARAMS}

# ── Async game loop ─────────────────────────────────────────────────────────

TARGET_FPS = 60


async def game_loop():
    """Main game loop running at ~60 fps."""
    async for _dt in PacedTicker(TARGET_FPS):
        ctrl.step()

        if clients:
            frame_msg = _build_frame_message()
            dead: list[WebSocket] = []
            for ws in clients:
                try:
                    await ws.send_text(frame_msg)
                except Exception:
                    dead.append(ws)
            for ws in dead:
                if ws in clients:
                    clients.remove(ws)
        else:
            ctrl.pending_events.clear()
            ctrl.sound_events.clear()


def _build_frame_message() -> str:
    """Serialize current state into a JSON frame message."""
    frame = {"type": "frame"}
    frame.update(ctrl.snapshot())
    frame["events"] = list(ctrl.pending_events)
    frame["sounds"] = list(ctrl.sound_events)
    ctrl.pending_events.clear()
    ctrl.sound_events.clear()
    return json.dumps(frame, separators=(',', ':'))


# ── Physics params helpers ──────────────────────────────────────────────────

def _get_params_data() -> list:
    """Return all physics params with current values."""
    result = []
    for mod, attr, label, mn, mx, step in PHYSICS_PARAMS:
        result.append({
            "attr": attr, "label": label,
            "value": round(getattr(mod, attr), 6),
            "min": mn, "max": mx, "step": step,
        })
    return result


def _adjust_param(idx: int, direction: int, fine: bool):
    if not 0 <= idx < len(PHYSICS_PARAMS):
        return None
    mod, attr, label, mn, mx, step = PHYSICS_PARAMS[idx]
    s = step / 10.0 if fine else step
    cur = getattr(mod, attr)
    new_val = max(mn, min(mx, cur + direction * s))
    if isinstance(PARAM_DEFAULTS[attr], int):
        new_val = int(round(new_val))
    setattr(mod, attr, new_val)
    print(f"[PARAM] {attr} {cur} -> {new_val}")
    return new_val


def _reset_params() -> None:
    for mod, attr, *_ in PHYSICS_PARAMS:
        setattr(mod, attr, PARAM_DEFAULTS[attr])


def _coord(msg: dict, key: str):
    value = msg.get(key)
    return None if value is None else float(value)


# ── WebSocket endpoint ──────────────────────────────────────────────────────

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()

    # Send init message with table/physics constants
    await ws.send_text(json.dumps({
        "type": "init",
        "table": ctrl.table.to_dict(),
        "canvas": [_phys.CANVAS_WIDTH, _phys.CANVAS_HEIGHT],
        "hud": ctrl.state.hud(),
        "sounds_on": ctrl.sounds_on,
        "sound_cues": {k: list(v) for k, v in SOUND_CUES.items()},
    }))
    clients.append(ws)

    try:
        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue

            cmd = msg.get("cmd", "")
            if cmd == "pointer_down":
                ctrl.pointer_down(float(msg.get("x", 0.0)), float(msg.get("y", 0.0)))
            elif cmd == "pointer_move":
                ctrl.pointer_move(float(msg.get("x", 0.0)), float(msg.get("y", 0.0)))
            elif cmd == "pointer_up":
                ctrl.pointer_up(_coord(msg, "x"), _coord(msg, "y"))
            elif cmd == "new_game":
                ctrl.new_game()
            elif cmd == "reset_rack":
                ctrl.reset_rack()
            elif cmd == "toggle_sound":
                on = ctrl.toggle_sound(msg.get("on"))
                await ws.send_text(json.dumps({"type": "sound", "on": on}))
            elif cmd == "get_state":
                await ws.send_text(json.dumps({
                    "type": "state",
                    "data": ctrl.snapshot(),
                }))
            elif cmd == "get_params":
                await ws.send_text(json.dumps({
                    "type": "params",
                    "data": _get_params_data(),
                }))
            elif cmd == "adjust_param":
                idx = int(msg.get("index", 0))
                new_val = _adjust_param(idx, int(msg.get("direction", 0)),
                                        bool(msg.get("fine", False)))
                if new_val is not None:
                    await ws.send_text(json.dumps({
                        "type": "param_update",
                        "index": idx,
                        "value": round(new_val, 6),
                    }))
            elif cmd == "reset_params":
                _reset_params()
                await ws.send_text(json.dumps({
                    "type": "params",
                    "data": _get_params_data(),
                }))
    except WebSocketDisconnect:
        pass
    finally:
        if ws in clients:
            clients.remove(ws)


# ── Sound cues ──────────────────────────────────────────────────────────────

@app.get("/sounds/{cue}.wav")
async def sound(cue: str):
    if cue not in SOUND_CUES:
        raise HTTPException(status_code=404, detail=f"unknown sound cue '{cue}'")
    return Response(content=cue_wav(cue), media_type="audio/wav")


# ── Static files + root route ───────────────────────────────────────────────

app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")


@app.get("/")
async def root():
    return FileResponse(STATIC_DIR / "index.html")


# ── Run with uvicorn ────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("server:app",
                host=os.environ.get("POOL_HOST", "0.0.0.0"),
                port=int(os.environ.get("POOL_PORT", "8000")),
                reload=False)
