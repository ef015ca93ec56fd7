"""WebSocket handler for Twilio Media Streams.

Handles the Twilio media stream protocol:
- Receives connected/start/media/mark/stop events from the caller's leg
- Sends synthesized audio back as media events followed by a mark
- Manages the call session lifecycle

A reader task turns raw socket messages into StreamEvents on a queue; the
connection task consumes that queue as a state machine
(awaiting_start → active → transferring → closed). Finished pipeline runs
post a ``turn_done`` event on the same queue so that a window which filled
up during the run is dispatched without waiting for the next frame.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

from voiceagent.api.deps import AgentServices
from voiceagent.core.pipeline import TurnResult
from voiceagent.core.session import CallSession, SessionState
from voiceagent.logging_config import get_logger, sanitize_for_log
from voiceagent.observability.metrics import record_call_ended, record_protocol_anomaly

logger: Any = get_logger(__name__)

TURN_DONE = "turn_done"
DISCONNECTED = "disconnected"


@dataclass(frozen=True, slots=True)
class StreamEvent:
    """One inbound protocol event, or an internal notification."""

    kind: str
    data: dict[str, Any] = field(default_factory=dict)


class TwilioAudioSender:
    """Sends audio to Twilio via WebSocket.

    Implements the AudioSender protocol for TurnPipeline.
    """

    def __init__(self, websocket: WebSocket, stream_sid: str) -> None:
        self._websocket = websocket
        self._stream_sid = stream_sid

    @property
    def stream_sid(self) -> str:
        return self._stream_sid

    async def send_audio(self, audio: bytes) -> None:
        """Send one media event carrying the whole reply."""
        message = {
            "event": "media",
            "streamSid": self._stream_sid,
            "media": {"payload": base64.b64encode(audio).decode("ascii")},
        }
        await self._send(message)

    async def send_mark(self, name: str) -> None:
        """Send a mark so Twilio reports when playback reaches it."""
        message = {
            "event": "mark",
            "streamSid": self._stream_sid,
            "mark": {"name": name},
        }
        await self._send(message)

    async def _send(self, message: dict[str, Any]) -> None:
        if self._websocket.client_state != WebSocketState.CONNECTED:
            logger.warning(f"Dropping {message['event']} for stream {self._stream_sid}: socket closed")
            return
        try:
            await self._websocket.send_json(message)
        except Exception as e:
            logger.error(f"Failed to send {message['event']} for stream {self._stream_sid}: {e}")


class MediaStreamConnection:
    """State machine for one media stream connection."""

    def __init__(self, websocket: WebSocket, services: AgentServices) -> None:
        self._websocket = websocket
        self._services = services
        self._events: asyncio.Queue[StreamEvent] = asyncio.Queue()
        self._session: CallSession | None = None
        self._sender: TwilioAudioSender | None = None
        self._turn: asyncio.Task[TurnResult] | None = None
        self._closed = False

    @property
    def session(self) -> CallSession | None:
        return self._session

    @property
    def state(self) -> SessionState:
        if self._closed:
            return SessionState.CLOSED
        if self._session is None:
            return SessionState.AWAITING_START
        return self._session.state

    async def run(self) -> None:
        """Serve the connection until stop or disconnect."""
        await self._websocket.accept()
        logger.info("Media stream WebSocket connected")

        reader = asyncio.create_task(self._read_events(), name="media-stream-reader")
        try:
            while True:
                event = await self._events.get()
                if not await self._handle(event):
                    break
        except Exception as e:
            logger.error(f"Media stream error: {e}")
        finally:
            reader.cancel()
            await asyncio.gather(reader, return_exceptions=True)
            await self._teardown()

    async def _read_events(self) -> None:
        """Parse socket messages into events; anomalies are dropped here."""
        try:
            while True:
                message = await self._websocket.receive()
                if message["type"] == "websocket.disconnect":
                    logger.info("Media stream WebSocket disconnected")
                    break
                raw = message.get("text")
                if raw is None:
                    self._anomaly("binary_frame", "Binary frame received")
                    continue
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError:
                    self._anomaly("invalid_json", "Invalid JSON received")
                    continue

                if not isinstance(data, dict) or not isinstance(data.get("event"), str):
                    self._anomaly("missing_event", "Message without an event name")
                    continue

                self._events.put_nowait(StreamEvent(kind=data["event"], data=data))
        except WebSocketDisconnect:
            logger.info("Media stream WebSocket disconnected")
        except Exception as e:
            logger.error(f"Media stream reader failed: {e}")
        finally:
            self._events.put_nowait(StreamEvent(kind=DISCONNECTED))

    async def _handle(self, event: StreamEvent) -> bool:
        """Apply one event. Returns False when the connection should end."""
        if event.kind == "connected":
            logger.debug(f"Media stream protocol: {event.data.get('protocol', 'unknown')}")
        elif event.kind == "start":
            self._on_start(event.data)
        elif event.kind == "media":
            self._on_media(event.data)
        elif event.kind == "mark":
            mark = event.data.get("mark") or {}
            logger.debug(f"Playback reached mark {mark.get('name')!r}")
        elif event.kind == "stop":
            logger.info(f"Stream stopped for call {self._call_label()}")
            return False
        elif event.kind == DISCONNECTED:
            return False
        elif event.kind == TURN_DONE:
            if self._turn is event.data.get("task"):
                self._turn = None
            self._dispatch()
        else:
            self._anomaly("unknown_event", f"Unknown event {event.kind!r}")
        return True

    def _on_start(self, message: dict[str, Any]) -> None:
        if self._session is not None:
            self._anomaly("duplicate_start", f"Second start event for call {self._call_label()}")
            return

        start = message.get("start")
        if not isinstance(start, dict):
            self._anomaly("invalid_start", "Start event without start payload")
            return

        call_sid = start.get("callSid")
        stream_sid = start.get("streamSid") or message.get("streamSid")
        if not call_sid or not stream_sid:
            self._anomaly("invalid_start", "Start event missing callSid or streamSid")
            return

        settings = self._services.settings
        session = CallSession(
            call_sid,
            stream_sid,
            max_turns=settings.conversation_history_turns,
            window_frames=settings.audio_window_frames,
        )
        self._session = session
        self._sender = TwilioAudioSender(self._websocket, stream_sid)
        self._services.registry.register(session)

        params = start.get("customParameters") or {}
        logger.info(
            f"Stream started: call {call_sid}, stream {stream_sid}, "
            f"session {session.session_id}, params {sanitize_for_log(params)}"
        )

    def _on_media(self, message: dict[str, Any]) -> None:
        session = self._session
        if session is None:
            self._anomaly("media_before_start", "Media event before start")
            return

        media = message.get("media") or {}
        payload = media.get("payload") if isinstance(media, dict) else None
        if not payload:
            self._anomaly("invalid_payload", "Media event without payload")
            return

        try:
            frame = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError, TypeError):
            self._anomaly("invalid_payload", "Failed to decode audio payload")
            return

        if session.state != SessionState.ACTIVE:
            return

        session.accumulator.push(frame)
        session.metrics.frames_received += 1
        self._dispatch()

    def _dispatch(self) -> None:
        if self._session is None or self._sender is None:
            return

        task = self._services.pipeline.try_dispatch(self._session, self._sender)
        if task is None:
            return

        self._turn = task
        task.add_done_callback(self._on_turn_done)

    def _on_turn_done(self, task: asyncio.Task[TurnResult]) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Turn task crashed: {task.exception()}")
        self._events.put_nowait(StreamEvent(kind=TURN_DONE, data={"task": task}))

    async def _teardown(self) -> None:
        """Close the session, let an in-flight turn finish, release everything."""
        self._closed = True
        session = self._session
        grace = self._services.settings.shutdown_grace_seconds

        if session is not None:
            session.close()

        turn = self._turn
        if turn is not None and not turn.done():
            _, pending = await asyncio.wait({turn}, timeout=grace)
            if pending:
                logger.warning(f"Cancelling in-flight turn after {grace:.1f}s grace period")
                turn.cancel()
                await asyncio.gather(turn, return_exceptions=True)

        if session is not None:
            self._services.registry.unregister(session.session_id)
            record_call_ended(session.age_ms / 1000)
            logger.info(
                f"Call {session.call_id} ended after {session.age_ms / 1000:.1f}s: "
                f"{session.metrics.to_dict()}"
            )

        if self._websocket.client_state == WebSocketState.CONNECTED:
            try:
                await self._websocket.close()
            except Exception as e:
                logger.debug(f"WebSocket close after teardown failed: {e}")

    def _anomaly(self, reason: str, message: str) -> None:
        logger.warning(f"{message}; dropped (call {self._call_label()})")
        record_protocol_anomaly(reason)

    def _call_label(self) -> str:
        return self._session.call_id if self._session is not None else "unknown"


async def media_stream_endpoint(websocket: WebSocket, services: AgentServices) -> None:
    """Handle a Twilio media stream WebSocket connection.

    This is the main WebSocket endpoint for bidirectional call audio.
    """
    connection = MediaStreamConnection(websocket, services)
    await connection.run()
