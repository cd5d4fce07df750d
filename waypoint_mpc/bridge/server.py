"""
Websocket server connecting the simulator to the controller.

Each connection gets its own ControllerSession. Frames are answered in
order: one telemetry event yields exactly one steer (or manual) event.
"""
import asyncio
import logging

import websockets

from waypoint_mpc.bridge.protocol import (
    ProtocolError,
    encode_manual,
    encode_steer,
    has_data,
    is_event_frame,
    parse_event,
)
from waypoint_mpc.control.controller import ControllerSession

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 4567


def process_frame(session: ControllerSession, frame):
    """
    Turn one inbound frame into the reply frame, or None when no reply is due.

    A frame without data puts the simulator in manual mode and clears the
    session memory. Telemetry the controller rejects also gets a manual
    reply. No error escapes: one bad cycle must not end the connection.
    """
    if isinstance(frame, bytes):
        frame = frame.decode("utf-8", errors="replace")
    if not is_event_frame(frame):
        return None

    data = has_data(frame)
    if not data:
        # Manual driving: whatever was last sent no longer acts on the car
        session.reset()
        return encode_manual()

    try:
        event, payload = parse_event(data)
    except ProtocolError as exc:
        logger.warning("Dropping frame: %s", exc)
        return encode_manual()

    if event != "telemetry":
        logger.debug("Ignoring event %r", event)
        return None

    try:
        command = session.handle_message(payload)
    except Exception:
        logger.exception("Control cycle failed")
        command = None

    if command is None:
        return encode_manual()
    return encode_steer(command)


class TelemetryServer:
    """Serves controller sessions over websockets."""

    def __init__(self, config, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT,
                 simulate_latency: bool = False) -> None:
        self.config = config
        self.host = host
        self.port = port
        self.simulate_latency = simulate_latency
        self.sessions = 0

    async def handle_connection(self, websocket) -> None:
        self.sessions += 1
        session = ControllerSession(self.config)
        logger.info("Connected (%d active)", self.sessions)
        try:
            async for frame in websocket:
                reply = await asyncio.to_thread(process_frame, session, frame)
                if reply is None:
                    continue
                if self.simulate_latency and self.config.latency > 0.0:
                    # Mimic the actuator delay of a real car before the command lands
                    await asyncio.sleep(self.config.latency)
                await websocket.send(reply)
        except websockets.ConnectionClosed as exc:
            logger.debug("Connection closed: %s", exc)
        finally:
            self.sessions -= 1
            logger.info("Disconnected")

    async def serve(self) -> None:
        async with websockets.serve(self.handle_connection, self.host, self.port):
            logger.info("Listening to port %d", self.port)
            await asyncio.Future()
