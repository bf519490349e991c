import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from core.errors import MovieNightError
from core.sanitization import normalize_room_code
from services.room_session import RoomSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # Clients never send anything meaningful; reading only detects the close
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


@router.websocket("/rooms/{code}/events")
async def room_events(websocket: WebSocket, code: str, user_id: str = ""):
    await websocket.accept()

    try:
        session = RoomSession(normalize_room_code(code), user_id)
        view = await session.start()
    except MovieNightError as e:
        await websocket.send_json({"type": "error", **e.to_dict()})
        await websocket.close(code=4000 + e.status_code)
        return

    disconnect = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        await websocket.send_json({"type": "snapshot", **view, "navigate": True})
        while True:
            update = asyncio.create_task(session.next_update())
            await asyncio.wait({update, disconnect}, return_when=asyncio.FIRST_COMPLETED)
            if disconnect.done():
                update.cancel()
                break
            await websocket.send_json({"type": "snapshot", **update.result()})
    except WebSocketDisconnect:
        pass
    finally:
        disconnect.cancel()
        session.close()
        logger.debug("Room %s: %s disconnected", session.room_code, user_id)
