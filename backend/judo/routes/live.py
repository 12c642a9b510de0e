"""
Live feed WebSocket.
Streams every published event as JSON; ?tatami=<id> narrows the feed to one mat.
Incoming client messages are read only to notice the disconnect.
"""
import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from judo.services.broadcast import hub

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/live")
async def live_feed(websocket: WebSocket, tatami: Optional[int] = Query(None)):
    await websocket.accept()
    subscription = hub.subscribe(mat_id=tatami)
    logger.info("Live client connected (tatami=%s, %d subscribers)", tatami, hub.subscriber_count())

    receiver = asyncio.ensure_future(websocket.receive_text())
    try:
        await websocket.send_json({"event": "connected", "data": {"tatami": tatami}})
        while True:
            getter = asyncio.ensure_future(subscription.queue.get())
            done, _ = await asyncio.wait({getter, receiver}, return_when=asyncio.FIRST_COMPLETED)
            if receiver in done:
                getter.cancel()
                receiver.result()
                receiver = asyncio.ensure_future(websocket.receive_text())
                continue
            await websocket.send_json(getter.result())
    except WebSocketDisconnect:
        logger.info("Live client disconnected (tatami=%s)", tatami)
    finally:
        receiver.cancel()
        hub.unsubscribe(subscription)
