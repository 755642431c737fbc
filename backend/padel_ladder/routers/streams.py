import asyncio
import json
from contextlib import suppress

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import redis.asyncio as redis

from .. import dependencies


router = APIRouter()


@router.websocket("/changes/stream")
async def change_stream(ws: WebSocket) -> None:
    """Relay "table changed" notifications to a client via Redis pub/sub.

    The subscription is in place before the socket is accepted, so a client
    sees every change made after its connection opens.
    """
    notifier = dependencies.get_change_notifier()
    try:
        async with notifier.redis_client.pubsub() as pubsub:
            await pubsub.subscribe(notifier.channel)
            await ws.accept()

            async def sender() -> None:
                try:
                    async for msg in pubsub.listen():
                        if msg.get("type") == "message":
                            await ws.send_json(json.loads(msg["data"]))
                except redis.ConnectionError:
                    await ws.close()

            send_task = asyncio.create_task(sender())
            try:
                while True:
                    await ws.receive_text()
            except WebSocketDisconnect:
                pass
            finally:
                send_task.cancel()
                with suppress(asyncio.CancelledError):
                    await send_task
                await pubsub.unsubscribe(notifier.channel)
    except redis.ConnectionError:
        await ws.close()
