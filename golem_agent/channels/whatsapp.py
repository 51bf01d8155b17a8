"""WhatsApp channel implementation using Node.js bridge."""

import asyncio
import json
import uuid
from typing import Any

from loguru import logger

from golem_agent.channels.base import BaseChannel, ChatMessage, MediaPayload, MessageKind
from golem_agent.config.schema import WhatsAppConfig
from golem_agent.errors import MediaDownloadError, TransportError


def parse_bridge_message(data: dict[str, Any]) -> ChatMessage:
    """Convert a bridge message payload into a ChatMessage."""
    raw_ts = data.get("timestamp")
    timestamp: float | None = None
    if raw_ts not in (None, "", 0):
        try:
            timestamp = float(raw_ts)
        except (TypeError, ValueError):
            timestamp = None

    sender = str(data.get("author") or data.get("from") or data.get("sender") or "")
    raw = data.get("_data")
    return ChatMessage(
        id=str(data.get("id", "")),
        chat_id=str(data.get("chatId") or data.get("from") or ""),
        sender=sender,
        body=str(data.get("body") or ""),
        timestamp=timestamp,
        kind=MessageKind.parse(data.get("type")),
        has_media=bool(data.get("hasMedia", False)),
        from_self=bool(data.get("fromMe", False)),
        quoted_id=str(data.get("quotedMsgId") or "") or None,
        filename=str(data.get("filename") or ""),
        sender_name=str(data.get("notifyName") or ""),
        raw=raw if isinstance(raw, dict) else {},
    )


class WhatsAppChannel(BaseChannel):
    """
    WhatsApp channel that connects to a Node.js bridge.

    The bridge wraps whatsapp-web.js and exposes it over a WebSocket:
    inbound messages arrive as ``{"type": "message", ...}`` events, and
    chat/media lookups are request/response pairs correlated by ``id``.
    """

    name = "whatsapp"

    def __init__(self, config: WhatsAppConfig):
        super().__init__(config)
        self.config: WhatsAppConfig = config
        self._ws = None
        self._connected = False
        self._pending: dict[str, asyncio.Future] = {}
        self._tasks: set[asyncio.Task] = set()

    async def start(self) -> None:
        """Start the WhatsApp channel by connecting to the bridge."""
        import websockets

        bridge_url = self.config.bridge_url

        logger.info(f"Connecting to WhatsApp bridge at {bridge_url}...")

        self._running = True

        while self._running:
            try:
                async with websockets.connect(bridge_url, max_size=None) as ws:
                    self._ws = ws
                    self._connected = True
                    logger.info("Connected to WhatsApp bridge")

                    if self.config.bridge_token:
                        await ws.send(json.dumps({"type": "auth", "token": self.config.bridge_token}))
                        logger.info("Sent bridge auth token")

                    async for message in ws:
                        try:
                            await self._handle_bridge_message(message)
                        except Exception as e:
                            logger.error(f"Error handling bridge message: {e}")

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning(f"WhatsApp bridge connection error: {e}")

            self._connected = False
            self._ws = None
            self._fail_pending("WhatsApp bridge disconnected")

            if self._running:
                logger.info(f"Reconnecting in {self.config.reconnect_delay_seconds:g} seconds...")
                await asyncio.sleep(self.config.reconnect_delay_seconds)

    async def stop(self) -> None:
        """Stop the WhatsApp channel."""
        self._running = False
        self._connected = False

        if self._ws:
            await self._ws.close()
            self._ws = None
        self._fail_pending("WhatsApp channel stopped")

    async def fetch_recent_messages(self, chat_id: str, limit: int) -> list[ChatMessage]:
        result = await self._request("fetchMessages", chatId=chat_id, limit=limit)
        if not isinstance(result, list):
            return []
        return [parse_bridge_message(item) for item in result if isinstance(item, dict)]

    async def get_quoted_message(self, message: ChatMessage) -> ChatMessage | None:
        if not message.quoted_id:
            return None
        result = await self._request("getQuotedMessage", messageId=message.id)
        if not isinstance(result, dict):
            return None
        return parse_bridge_message(result)

    async def get_message_by_id(self, message_id: str) -> ChatMessage | None:
        result = await self._request("getMessageById", messageId=message_id)
        if not isinstance(result, dict):
            return None
        return parse_bridge_message(result)

    async def download_media(self, message: ChatMessage) -> MediaPayload | None:
        try:
            result = await self._request("downloadMedia", messageId=message.id)
        except TransportError as e:
            raise MediaDownloadError(f"media download failed for {message.id}: {e}") from e
        if not isinstance(result, dict) or not result.get("data"):
            return None
        return MediaPayload.from_base64(
            str(result["data"]),
            mime_type=str(result.get("mimetype") or "application/octet-stream"),
            filename=str(result.get("filename") or ""),
        )

    async def reply(self, message: ChatMessage, text: str) -> None:
        await self._request("reply", messageId=message.id, chatId=message.chat_id, text=text)

    async def _lookup_sender_name(self, message: ChatMessage) -> str | None:
        result = await self._request("getContact", messageId=message.id)
        if not isinstance(result, dict):
            return None
        return str(result.get("name") or result.get("pushname") or "") or None

    async def _request(self, action: str, **params: Any) -> Any:
        """Send a request to the bridge and wait for its response."""
        if not self._ws or not self._connected:
            raise TransportError("WhatsApp bridge not connected")

        request_id = uuid.uuid4().hex
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._ws.send(
                json.dumps({"type": "request", "id": request_id, "action": action, "params": params})
            )
            return await asyncio.wait_for(future, timeout=self.config.request_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise TransportError(f"bridge request '{action}' timed out") from e
        finally:
            self._pending.pop(request_id, None)

    def _fail_pending(self, reason: str) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(TransportError(reason))
        self._pending.clear()

    async def _handle_bridge_message(self, raw: str) -> None:
        """Handle a message from the bridge."""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON from bridge: {raw[:100]}")
            return

        msg_type = data.get("type")

        if msg_type == "response":
            future = self._pending.get(str(data.get("id", "")))
            if future is None or future.done():
                return
            if data.get("ok", True):
                future.set_result(data.get("result"))
            else:
                future.set_exception(TransportError(str(data.get("error") or "bridge request failed")))

        elif msg_type == "message":
            message = parse_bridge_message(data)
            # Each inbound message runs as its own task so bridge responses keep flowing.
            task = asyncio.create_task(self._handle_message(message))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        elif msg_type == "status":
            status = data.get("status")
            logger.info(f"WhatsApp status: {status}")

            if status == "connected":
                self._connected = True
            elif status == "disconnected":
                self._connected = False

        elif msg_type == "qr":
            logger.info("Scan QR code in the bridge terminal to connect WhatsApp")

        elif msg_type == "error":
            logger.error(f"WhatsApp bridge error: {data.get('error')}")
