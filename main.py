#!/usr/bin/env python3
from __future__ import annotations

import asyncio
import os
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from config import SIM_CONFIG
from world import World, create_world, advance_world, request_move, request_build, snapshot
from bots import get_ai_debug_state

TICK_DELAY: float = float(SIM_CONFIG.get("tick_delay", 1.0))

_simulation_task: asyncio.Task | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    await start_simulation()
    try:
        yield
    finally:
        if _simulation_task:
            _simulation_task.cancel()
            await asyncio.gather(_simulation_task, return_exceptions=True)


app = FastAPI(lifespan=lifespan)

print(">>> Starting province_sim with TICK_DELAY =", TICK_DELAY)

world: World = create_world()
world_lock = asyncio.Lock()


class MoveRequest(BaseModel):
    origin: int
    target: int


class BuildRequest(BaseModel):
    province: int


class SpeedRequest(BaseModel):
    tick_delay: float = Field(gt=0)


def _state_payload() -> dict:
    payload = snapshot(world)
    payload["tick_delay"] = TICK_DELAY
    payload["tick_delay_ms"] = int(TICK_DELAY * 1000)
    payload["events"] = world.events[-30:]
    payload["ai_state"] = get_ai_debug_state(world)
    return payload


def _event_payload(ev) -> dict:
    return {
        "tick": ev.tick,
        "kind": ev.kind,
        "provinces": ev.provinces,
        "nations": ev.nations,
        "text": ev.text,
    }


@app.get("/")
async def index():
    """Lightweight health endpoint for the backend."""
    return JSONResponse({"status": "ok", "service": "province-backend"})


@app.get("/state")
async def state_endpoint():
    async with world_lock:
        data = _state_payload()
    return JSONResponse(data)


@app.get("/history")
async def history_endpoint():
    """
    Dump the full structured history as JSON.
    """
    async with world_lock:
        data = [_event_payload(ev) for ev in world.history]
    return JSONResponse(data)


@app.get("/province/{province_id}")
async def province_detail(province_id: int):
    """Return current province state plus the history entries touching it."""
    async with world_lock:
        if province_id not in world.provinces:
            return JSONResponse({"error": "not found"}, status_code=404)
        prov = world.provinces[province_id]
        armies_here = [
            {
                "id": a.id,
                "owner": a.owner,
                "size": a.size,
                "morale": a.morale,
                "state": a.state.name,
                "destination": a.destination,
                "ticks_remaining": a.ticks_remaining,
                "conquest_progress": a.conquest_progress,
            }
            for a in world.armies_at(province_id)
        ]
        data = {
            "id": prov.id,
            "x": prov.x,
            "y": prov.y,
            "owner": prov.owner,
            "owner_name": world.nation_name(prov.owner) if prov.owner else None,
            "neighbors": list(prov.neighbors),
            "is_capital": prov.id in world.capitals,
            "armies": armies_here,
            "history": [_event_payload(ev) for ev in world.history if province_id in ev.provinces],
        }
    return JSONResponse(data)


@app.post("/pause")
async def pause_endpoint():
    async with world_lock:
        world.paused = True
    return JSONResponse({"paused": True})


@app.post("/resume")
async def resume_endpoint():
    async with world_lock:
        # a finished game stays paused
        if not world.game_over:
            world.paused = False
        paused = world.paused
    return JSONResponse({"paused": paused})


@app.post("/speed")
async def speed_endpoint(req: SpeedRequest):
    global TICK_DELAY
    # the loop reads the delay after releasing the lock, so the next wait uses it
    async with world_lock:
        TICK_DELAY = req.tick_delay
    print(f"SIM: tick delay set to {TICK_DELAY}s")
    return JSONResponse({"tick_delay": TICK_DELAY})


@app.post("/move")
async def move_endpoint(req: MoveRequest):
    async with world_lock:
        accepted = request_move(world, req.origin, req.target)
    return JSONResponse({"accepted": accepted})


@app.post("/build")
async def build_endpoint(req: BuildRequest):
    async with world_lock:
        accepted = request_build(world, req.province)
    return JSONResponse({"accepted": accepted})


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    print("WS: incoming connection")
    await ws.accept()
    print("WS: client accepted")
    try:
        while True:
            async with world_lock:
                payload = _state_payload()
            await ws.send_json(payload)
            await asyncio.sleep(TICK_DELAY)
    except WebSocketDisconnect:
        print("WS: client disconnected")
        return
    except Exception:
        print("WS: unexpected error in websocket handler:")
        traceback.print_exc()
        return


async def start_simulation() -> None:
    global _simulation_task
    print(">>> startup: simulation task starting")

    async def run():
        announced = False
        while True:
            try:
                async with world_lock:
                    summary = advance_world(world)
                    winner = world.winner

                if summary is not None and summary.tick % 20 == 0:
                    print(f"SIM: tick {summary.tick}")
                if winner is not None and not announced:
                    announced = True
                    print(f"SIM: game over at tick {world.tick}, winner={world.nation_name(winner)}")
                # re-read every iteration so a speed change applies from the next wait on
                await asyncio.sleep(TICK_DELAY)
            except Exception:
                print("SIM: error in background loop:")
                traceback.print_exc()
                await asyncio.sleep(1.0)

    _simulation_task = asyncio.create_task(run())


if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", SIM_CONFIG.get("port", 8000)))
    reload_flag = os.environ.get("RELOAD", "").lower() in {"1", "true", "yes", "on"}
    uvicorn.run("main:app", host=host, port=port, reload=reload_flag)
