"""FastAPI relay serving the shared record store over a WebSocket."""

import asyncio
import logging
import time

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect

from . import config
from .connection_manager import ConnectionManager
from .constants import ROOMS_PATH, ROOM_TTL, SWEEP_INTERVAL
from .errors import InvalidCode
from .lobby import normalize_code
from .models import MatchSession, SessionStatus
from .store import MemoryRecordStore, join_path

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper = asyncio.create_task(sweep_loop())
    yield
    sweeper.cancel()


app = FastAPI(lifespan=lifespan)
store = MemoryRecordStore()
manager = ConnectionManager(store)


@app.get("/")
async def health():
    rooms = await store.get(ROOMS_PATH) or {}
    return {"status": "ok", "rooms": len(rooms), "connections": len(manager.connections)}


@app.get("/rooms/{code}")
async def get_room(code: str):
    try:
        code = normalize_code(code)
    except InvalidCode as e:
        raise HTTPException(status_code=400, detail=str(e))
    data = await store.get(join_path(ROOMS_PATH, code))
    if not data:
        raise HTTPException(status_code=404, detail="Room not found")
    return data


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await manager.connect(ws)
    try:
        while True:
            raw = await ws.receive_text()
            await manager.handle_message(ws, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(ws)


async def sweep_stale_rooms(now: float = None) -> list[str]:
    """Delete rooms that sat in ``waiting`` longer than the room TTL."""
    now = time.time() if now is None else now
    rooms = await store.get(ROOMS_PATH) or {}
    removed = []
    for code, data in rooms.items():
        session = MatchSession.from_dict(code, data)
        if session.status is SessionStatus.WAITING and now - session.created_at > ROOM_TTL:
            await store.delete(join_path(ROOMS_PATH, code))
            removed.append(code)
    if removed:
        logger.info("Swept %d stale room(s): %s", len(removed), ", ".join(removed))
    return removed


async def sweep_loop():
    while True:
        await asyncio.sleep(SWEEP_INTERVAL)
        try:
            await sweep_stale_rooms()
        except Exception:
            logger.exception("Room sweep failed")


def run():
    import uvicorn
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    logger.info("Relay starting on ws://%s:%d/ws", config.RELAY_HOST, config.RELAY_PORT)
    uvicorn.run(app, host=config.RELAY_HOST, port=config.RELAY_PORT)


if __name__ == "__main__":
    run()
