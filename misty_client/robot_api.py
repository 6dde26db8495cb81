"""
HTTP transport to the Misty REST API
- MistyApi: one method per endpoint the client uses
- CommandDispatcher: fire-and-forget delivery of movement commands
"""

import json
import queue
import logging
import threading
from typing import Optional

import requests

from .errors import MistyClientError
from .input_mapper import Command, DriveCommand, HeadCommand

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


class MistyApi:
    """Sends REST requests to a Misty robot"""

    def __init__(self, ip_address: str, port: Optional[int] = None, timeout: float = DEFAULT_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.ip_address = ip_address
        self.base_url = f"http://{ip_address}" if port is None else f"http://{ip_address}:{port}"
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, path: str, payload: Optional[dict] = None) -> requests.Response:
        # The robot expects a JSON string body without a JSON content type
        data = json.dumps(payload) if payload is not None else None
        return self.session.post(f"{self.base_url}{path}", data=data, timeout=self.timeout)

    def move_head(self, command: HeadCommand) -> requests.Response:
        return self._post("/api/head", command.to_payload())

    def drive(self, command: DriveCommand) -> requests.Response:
        return self._post("/api/drive", command.to_payload())

    def send(self, command: Command) -> requests.Response:
        """Deliver a movement command synchronously"""
        if isinstance(command, HeadCommand):
            return self.move_head(command)
        if isinstance(command, DriveCommand):
            return self.drive(command)
        raise MistyClientError(f"Unknown command type: {type(command).__name__}")

    def restart(self) -> requests.Response:
        """Reboot the robot, keeping the sensory services up"""
        return self._post("/api/reboot", {"Core": False, "SensoryServices": True})

    def start_video_stream(self, config) -> bool:
        """Ask the robot to start streaming; True on HTTP 200"""
        response = self._post("/api/videostreaming/start", config.to_payload())
        if response.status_code != 200:
            logger.warning(f"Video stream start refused: HTTP {response.status_code}")
            return False
        return True

    def stop_video_stream(self) -> requests.Response:
        return self._post("/api/videostreaming/stop")

    def websocket_url(self, port: int) -> str:
        return f"ws://{self.ip_address}:{port}"

    def close(self):
        self.session.close()


class CommandDispatcher:
    """
    Non-blocking command sink.

    `send()` only enqueues; a daemon worker thread delivers commands to
    the transport in order. Results are never reported back to the
    caller, failures are logged and dropped.
    """

    def __init__(self, transport, max_pending: int = 16):
        self.transport = transport
        self.command_queue = queue.Queue(maxsize=max_pending)
        self.running = False
        self.worker_thread = None
        self.sent = 0
        self.failed = 0

    def start(self):
        if self.running:
            return
        self.running = True
        self.worker_thread = threading.Thread(target=self._worker)
        self.worker_thread.daemon = True
        self.worker_thread.start()

    def send(self, command: Command):
        try:
            self.command_queue.put(command, block=False)
        except queue.Full:
            logger.warning(f"Command queue full, dropping {command}")

    def _deliver(self, command: Command):
        try:
            response = self.transport.send(command)
        except Exception as e:
            self.failed += 1
            logger.warning(f"⚠️ Command failed: {e}")
            return
        self.sent += 1
        status = getattr(response, "status_code", None)
        if status is not None and status != 200:
            logger.warning(f"⚠️ {type(command).__name__} answered with HTTP {status}")

    def _worker(self):
        while True:
            command = self.command_queue.get()
            if command is None:
                break
            self._deliver(command)

    def stop(self, timeout: float = 2.0):
        """Deliver what is already queued, then stop the worker"""
        if not self.running:
            return
        self.running = False
        try:
            self.command_queue.put(None, timeout=timeout)
        except queue.Full:
            logger.warning(f"Command worker not draining, abandoning "
                           f"{self.command_queue.qsize()} queued commands")
            return
        if self.worker_thread and self.worker_thread.is_alive():
            self.worker_thread.join(timeout=timeout)
