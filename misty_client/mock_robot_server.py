#!/usr/bin/env python3
"""
Mock Misty robot for testing the teleop client

This simulates the parts of the Misty REST API the client uses:
1. /api/head, /api/drive - movement commands
2. /api/reboot - restart request
3. /api/videostreaming/start, /api/videostreaming/stop - video session
4. ws://<host>:<stream port> - JPEG frames of a simulated camera

Run this to test the client without the actual hardware.
"""

import math
import time
import logging
import argparse
import threading

import cv2
import numpy as np
from flask import Flask, jsonify, request
from websockets.exceptions import ConnectionClosed
from websockets.sync.server import serve

logger = logging.getLogger(__name__)


class SimulatedMisty:
    def __init__(self):
        self.pitch = 0
        self.yaw = 0
        self.linear_velocity = 0
        self.angular_velocity = 0
        self.x = 200.0
        self.y = 270.0
        self.heading = -math.pi / 2
        self.streaming = False
        self.stream_config = {}
        self.commands = []
        self.reboots = []
        self.lock = threading.Lock()

    def record(self, endpoint, payload):
        with self.lock:
            self.commands.append((endpoint, payload))

    def move_head(self, pitch, yaw):
        with self.lock:
            self.pitch = max(-100, min(100, pitch))
            self.yaw = max(-100, min(100, yaw))

    def drive(self, linear_velocity, angular_velocity):
        with self.lock:
            self.linear_velocity = linear_velocity
            self.angular_velocity = angular_velocity

    def step(self, dt):
        with self.lock:
            self.heading += math.radians(self.angular_velocity) * dt
            speed = self.linear_velocity * 0.5
            self.x += speed * math.cos(self.heading) * dt
            self.y += speed * math.sin(self.heading) * dt
            # Keep in bounds
            self.x = max(20, min(380, self.x))
            self.y = max(20, min(520, self.y))

    def render(self, width, height):
        """Draw a simulated camera frame"""
        frame = np.zeros((height, width, 3), dtype=np.uint8)
        frame[:] = (50, 50, 50)  # Dark gray background

        with self.lock:
            x, y, heading = self.x, self.y, self.heading
            pitch, yaw = self.pitch, self.yaw

        sx = width / 400.0
        sy = height / 540.0
        cx, cy = int(x * sx), int(y * sy)
        hx = int(cx + 25 * math.cos(heading))
        hy = int(cy + 25 * math.sin(heading))
        cv2.circle(frame, (cx, cy), 12, (0, 255, 0), -1)
        cv2.arrowedLine(frame, (cx, cy), (hx, hy), (0, 255, 255), 2, tipLength=0.3)

        cv2.putText(frame, "MOCK MISTY", (10, 25),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 2)
        cv2.putText(frame, f"Head pitch {pitch} yaw {yaw}", (10, 50),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.45, (200, 200, 200), 1)
        return frame


def encode_jpeg(frame, quality=80):
    ok, buffer = cv2.imencode('.jpg', frame, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise ValueError("JPEG encoding failed")
    return buffer.tobytes()


class VideoSocketServer:
    """Pushes simulated frames to every WebSocket client while streaming"""

    def __init__(self, robot: SimulatedMisty, host='0.0.0.0', fps=30):
        self.robot = robot
        self.host = host
        self.fps = fps
        self.server = None
        self.thread = None
        self.port = None
        self.bound_port = None

    def start(self, port):
        if self.server is not None and self.port == port:
            return
        self.stop()
        self.port = port
        self.server = serve(self._handle_client, self.host, port)
        self.bound_port = self.server.socket.getsockname()[1]
        self.thread = threading.Thread(target=self.server.serve_forever)
        self.thread.daemon = True
        self.thread.start()
        logger.info(f"Video socket listening on port {self.bound_port}")

    def _handle_client(self, websocket):
        logger.info("Video client connected")
        period = 1.0 / self.fps
        try:
            while self.robot.streaming:
                config = self.robot.stream_config
                frame = self.robot.render(config.get("Width", 400), config.get("Height", 540))
                websocket.send(encode_jpeg(frame, config.get("Quality", 80)))
                self.robot.step(period)
                time.sleep(period)
        except ConnectionClosed:
            logger.info("Video client disconnected")
            return
        websocket.close()

    def stop(self):
        if self.server is not None:
            self.server.shutdown()
            if self.thread:
                self.thread.join(timeout=2)
        self.server = None
        self.thread = None
        self.bound_port = None


def create_app(robot: SimulatedMisty = None, video_server: VideoSocketServer = None):
    """
    Build the Flask app. Passing video_server=None keeps the mock
    REST-only (no WebSocket listener is opened).
    """
    robot = robot or SimulatedMisty()
    app = Flask(__name__)
    app.config['ROBOT'] = robot

    def payload():
        # The client posts JSON bodies without a JSON content type
        return request.get_json(force=True, silent=True) or {}

    @app.route('/api/head', methods=['POST'])
    def head():
        data = payload()
        robot.record('head', data)
        robot.move_head(int(data.get('Pitch', 0)), int(data.get('Yaw', 0)))
        return jsonify({'result': True, 'status': 'Success'})

    @app.route('/api/drive', methods=['POST'])
    def drive():
        data = payload()
        robot.record('drive', data)
        robot.drive(int(data.get('LinearVelocity', 0)), int(data.get('AngularVelocity', 0)))
        return jsonify({'result': True, 'status': 'Success'})

    @app.route('/api/reboot', methods=['POST'])
    def reboot():
        data = payload()
        robot.record('reboot', data)
        robot.reboots.append(data)
        logger.info(f"Reboot requested: {data}")
        return jsonify({'result': True, 'status': 'Success'})

    @app.route('/api/videostreaming/start', methods=['POST'])
    def start_streaming():
        data = payload()
        robot.record('videostreaming/start', data)
        if 'Port' not in data:
            return jsonify({'result': False, 'error': 'Port is required'}), 400
        robot.stream_config = data
        robot.streaming = True
        if video_server is not None:
            video_server.start(int(data['Port']))
        return jsonify({'result': True, 'status': 'Success'})

    @app.route('/api/videostreaming/stop', methods=['POST'])
    def stop_streaming():
        robot.record('videostreaming/stop', None)
        robot.streaming = False
        return jsonify({'result': True, 'status': 'Success'})

    @app.route('/')
    def index():
        return """
    <h1>Mock Misty</h1>
    <p>This is a simulated Misty robot for testing the teleop client.</p>
    <ul>
        <li>POST /api/head - {"Pitch", "Yaw", "Velocity"}</li>
        <li>POST /api/drive - {"LinearVelocity", "AngularVelocity"}</li>
        <li>POST /api/reboot - {"Core", "SensoryServices"}</li>
        <li>POST /api/videostreaming/start - {"Port", "Rotation", "Width", "Height", "Quality"}</li>
        <li>POST /api/videostreaming/stop</li>
    </ul>
    """

    return app


def main(argv=None):
    parser = argparse.ArgumentParser(description='Mock Misty robot server')
    parser.add_argument('--host', default='0.0.0.0', help='Bind address (default: 0.0.0.0)')
    parser.add_argument('--port', type=int, default=5001, help='REST port (default: 5001)')
    parser.add_argument('--fps', type=int, default=30, help='Simulated camera FPS (default: 30)')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    robot = SimulatedMisty()
    video_server = VideoSocketServer(robot, host=args.host, fps=args.fps)
    app = create_app(robot, video_server)

    print("=" * 50)
    print("Mock Misty Robot")
    print("=" * 50)
    print("To test the client, run in separate terminals:")
    print(f"  Terminal 1: misty-mock-robot --port {args.port}")
    print(f"  Terminal 2: misty-teleop localhost --http-port {args.port}")
    print("=" * 50)

    try:
        app.run(host=args.host, port=args.port, threaded=True)
    finally:
        video_server.stop()


if __name__ == '__main__':
    main()
