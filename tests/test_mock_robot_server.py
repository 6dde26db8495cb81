"""Tests for the Flask mock robot, alone and driven through MistyApi."""

from __future__ import annotations

import json
from urllib.parse import urlparse

import cv2
import numpy as np
import pytest
import websocket

from misty_client.input_mapper import DriveCommand, HeadCommand
from misty_client.mock_robot_server import SimulatedMisty, VideoSocketServer, create_app, encode_jpeg
from misty_client.robot_api import MistyApi
from misty_client.stream_session import SessionState, StreamConfig, StreamSessionManager

from conftest import FakeConnector


@pytest.fixture
def robot() -> SimulatedMisty:
    return SimulatedMisty()


@pytest.fixture
def client(robot):
    app = create_app(robot)
    app.config["TESTING"] = True
    return app.test_client()


class FlaskSession:
    """Routes MistyApi's requests into the Flask test client."""

    def __init__(self, client) -> None:
        self.client = client

    def post(self, url, data=None, timeout=None):
        return self.client.post(urlparse(url).path, data=data)

    def close(self) -> None:
        pass


class TestEndpoints:

    def test_head(self, client, robot) -> None:
        response = client.post("/api/head", data=json.dumps({"Pitch": 12, "Yaw": -7, "Velocity": 100}))
        assert response.status_code == 200
        assert (robot.pitch, robot.yaw) == (12, -7)

    def test_drive(self, client, robot) -> None:
        client.post("/api/drive", data=json.dumps({"LinearVelocity": 30, "AngularVelocity": -10}))
        assert (robot.linear_velocity, robot.angular_velocity) == (30, -10)

    def test_reboot(self, client, robot) -> None:
        client.post("/api/reboot", data=json.dumps({"Core": False, "SensoryServices": True}))
        assert robot.reboots == [{"Core": False, "SensoryServices": True}]

    def test_streaming_start_stop(self, client, robot) -> None:
        response = client.post("/api/videostreaming/start", data=json.dumps(StreamConfig().to_payload()))
        assert response.status_code == 200
        assert robot.streaming
        assert robot.stream_config["Width"] == 400

        client.post("/api/videostreaming/stop")
        assert not robot.streaming

    def test_streaming_start_needs_port(self, client, robot) -> None:
        response = client.post("/api/videostreaming/start", data=json.dumps({"Width": 400}))
        assert response.status_code == 400
        assert not robot.streaming

    def test_index(self, client) -> None:
        assert b"Mock Misty" in client.get("/").data


class TestSimulation:

    def test_render_matches_requested_size(self, robot) -> None:
        frame = robot.render(320, 480)
        assert frame.shape == (480, 320, 3)
        decoded = cv2.imdecode(np.frombuffer(encode_jpeg(frame), dtype=np.uint8), cv2.IMREAD_COLOR)
        assert decoded.shape == (480, 320, 3)

    def test_drive_moves_robot(self, robot) -> None:
        start = (robot.x, robot.y)
        robot.drive(100, 0)
        robot.step(0.5)
        assert (robot.x, robot.y) != start


class TestAgainstMistyApi:

    @pytest.fixture
    def api(self, client) -> MistyApi:
        return MistyApi("localhost", port=5001, session=FlaskSession(client))

    def test_commands_reach_robot(self, api, robot) -> None:
        api.send(HeadCommand(pitch=5, yaw=-5, velocity=100))
        api.send(DriveCommand(linear_velocity=20, angular_velocity=10))
        api.restart()

        assert [endpoint for endpoint, _ in robot.commands] == ["head", "drive", "reboot"]
        assert (robot.pitch, robot.yaw) == (5, -5)

    def test_session_lifecycle(self, api, robot) -> None:
        connector = FakeConnector()
        manager = StreamSessionManager(api, connect=connector)

        session = manager.start(StreamConfig(quality=60))

        assert robot.streaming
        assert robot.stream_config["Quality"] == 60
        assert connector.urls == ["ws://localhost:5678"]

        session.close()

        assert not robot.streaming
        assert manager.state == SessionState.CLOSED
        assert [e for e, _ in robot.commands] == ["videostreaming/start", "videostreaming/stop"]


class TestVideoSocketServer:

    def test_streams_jpeg_frames(self, robot) -> None:
        robot.stream_config = StreamConfig(width=160, height=120).to_payload()
        robot.streaming = True
        server = VideoSocketServer(robot, host="127.0.0.1", fps=50)
        server.start(0)
        try:
            connection = websocket.create_connection(f"ws://127.0.0.1:{server.bound_port}", timeout=5)
            try:
                data = connection.recv()
            finally:
                connection.close()
        finally:
            robot.streaming = False
            server.stop()

        frame = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
        assert frame.shape == (120, 160, 3)
        assert server.bound_port is None
