"""
Video stream session lifecycle for the Misty robot
- Negotiates the stream over REST, then opens the robot's WebSocket
- Inbound JPEG frames are handed on unmodified
- Any close (remote, network failure or client) ends with one
  best-effort stop notification

Session states:
  IDLE -> STARTING -> ACTIVE -> CLOSING -> CLOSED
  STARTING -> CLOSED when negotiation fails
"""

import queue
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

import requests
import websocket

from .errors import StreamStartError

logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "IDLE"
    STARTING = "STARTING"
    ACTIVE = "ACTIVE"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class StreamConfig:
    """Parameters negotiated with the robot when a stream starts"""
    port: int = 5678
    rotation: int = 90
    width: int = 400
    height: int = 540
    quality: int = 100

    def to_payload(self) -> dict:
        return {
            "Port": self.port,
            "Rotation": self.rotation,
            "Width": self.width,
            "Height": self.height,
            "Quality": self.quality,
        }


class StreamSession:
    """One active video subscription bound to a WebSocket connection"""

    def __init__(self, transport, connection, config: StreamConfig, max_queued_frames: int = 5):
        self.transport = transport
        self.connection = connection
        self.config = config
        self.state = SessionState.ACTIVE
        self.close_reason: Optional[str] = None
        self.frames_received = 0

        self.frame_queue = queue.Queue(maxsize=max_queued_frames)
        self.receive_thread = None
        self._state_lock = threading.Lock()
        self._close_listeners: List[Callable[["StreamSession"], None]] = []
        self._closed = threading.Event()

    @property
    def active(self) -> bool:
        return self.state == SessionState.ACTIVE

    def add_close_listener(self, listener: Callable[["StreamSession"], None]):
        self._close_listeners.append(listener)

    def receive_forever(self, on_frame: Callable[[bytes], None]):
        """
        Read binary frames until the connection closes, then run the
        close protocol. Blocks the calling thread.
        """
        reason = "remote close"
        try:
            while self.active:
                try:
                    data = self.connection.recv()
                except websocket.WebSocketConnectionClosedException:
                    break
                except (websocket.WebSocketException, OSError) as e:
                    reason = f"connection error: {e}"
                    break

                # recv() returns an empty payload once a close frame arrives
                if not data:
                    break

                self.frames_received += 1
                try:
                    on_frame(data)
                except Exception as e:
                    reason = f"frame handler error: {e}"
                    raise
        finally:
            self._handle_close(reason)

    def start_receiving(self):
        """Run receive_forever on a daemon thread feeding get_frame()"""
        self.receive_thread = threading.Thread(target=self.receive_forever, args=(self._enqueue_frame,))
        self.receive_thread.daemon = True
        self.receive_thread.start()

    def _enqueue_frame(self, data: bytes):
        try:
            self.frame_queue.put(data, block=False)
        except queue.Full:
            try:
                self.frame_queue.get_nowait()  # Remove oldest frame
                self.frame_queue.put(data, block=False)
            except (queue.Empty, queue.Full):
                pass

    def get_frame(self, timeout: Optional[float] = None) -> Optional[bytes]:
        """Next queued frame, or None if nothing arrived in time"""
        try:
            if timeout is None:
                return self.frame_queue.get_nowait()
            return self.frame_queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self):
        """Client-initiated close"""
        self._handle_close("client close")

    def wait_closed(self, timeout: Optional[float] = None) -> bool:
        return self._closed.wait(timeout)

    def _handle_close(self, reason: str):
        with self._state_lock:
            if self.state != SessionState.ACTIVE:
                return
            self.state = SessionState.CLOSING
            self.close_reason = reason

        logger.info(f"Stream closing ({reason})")
        try:
            self.connection.close()
        except (websocket.WebSocketException, OSError) as e:
            logger.debug(f"Error closing socket: {e}")

        notify_stop(self.transport)

        self.state = SessionState.CLOSED
        self._closed.set()
        logger.info("Closed socket")
        for listener in self._close_listeners:
            listener(self)


def notify_stop(transport):
    """Tell the robot to stop streaming. Failures are logged, never raised."""
    try:
        transport.stop_video_stream()
    except Exception as e:
        logger.warning(f"⚠️ Stop notification failed: {e}")


class StreamSessionManager:
    """
    Starts video sessions and tracks the current one.

    `transport` provides start_video_stream(config) -> bool,
    stop_video_stream(), restart() and websocket_url(port).
    `connect` opens a WebSocket for a URL (websocket.create_connection
    by default).
    """

    def __init__(self, transport, connect: Callable = None, connect_timeout: Optional[float] = 10.0):
        self.transport = transport
        self.connect = connect or websocket.create_connection
        self.connect_timeout = connect_timeout
        self.session: Optional[StreamSession] = None
        self._state = SessionState.IDLE
        self._start_lock = threading.Lock()
        self._starting = False

    @property
    def state(self) -> SessionState:
        if self.session is not None:
            return self.session.state
        return self._state

    def start(self, config: StreamConfig = None) -> StreamSession:
        """
        Negotiate a stream and open its socket.

        Raises:
            StreamStartError: the robot did not answer 200, the socket
                could not be opened, or a start is already in flight
        """
        config = config or StreamConfig()
        with self._start_lock:
            if self._starting:
                raise StreamStartError("A stream start is already in progress")
            self._starting = True

        try:
            if self.session is not None and self.session.active:
                logger.info("Closing the active stream before starting a new one")
                self.session.close()
            self.session = None
            self._state = SessionState.STARTING
            logger.info(f"Starting video stream {config.width}x{config.height} "
                        f"q={config.quality} on port {config.port}")

            try:
                accepted = self.transport.start_video_stream(config)
            except requests.RequestException as e:
                self._state = SessionState.CLOSED
                raise StreamStartError(f"Failed to start video stream: {e}") from e

            if not accepted:
                self._state = SessionState.CLOSED
                raise StreamStartError("Failed to start video stream.")

            url = self.transport.websocket_url(config.port)
            try:
                connection = self.connect(url, timeout=self.connect_timeout)
            except (websocket.WebSocketException, OSError) as e:
                self._state = SessionState.CLOSED
                notify_stop(self.transport)
                raise StreamStartError(f"Could not open {url}: {e}") from e

            # recv() should block until a frame or a close arrives
            if hasattr(connection, "settimeout"):
                connection.settimeout(None)

            self.session = StreamSession(self.transport, connection, config)
            logger.info(f"✅ Video stream connected: {url}")
            return self.session
        finally:
            if self.session is None:
                self._state = SessionState.CLOSED
            self._starting = False

    def restart(self):
        """One-shot reboot request: core stays up, sensory services kept"""
        logger.info("Requesting robot restart")
        self.transport.restart()

    def close(self):
        if self.session is not None:
            self.session.close()
