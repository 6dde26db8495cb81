#!/usr/bin/env python3
"""
Gamepad teleoperation client for the Misty robot
- Left stick drives the body, right stick steers the head
- Streams the robot's camera over its video WebSocket
- Movement commands are throttled and sent fire-and-forget over REST

System Architecture:
  - Misty REST API: /api/drive, /api/head, /api/reboot,
    /api/videostreaming/start, /api/videostreaming/stop
  - Misty video socket: ws://<robot>:<port>, one JPEG per message
  - This Client: frame loop polling the gamepad, mapping sticks to
    commands and drawing received frames
"""

import time
import logging
import argparse
from datetime import datetime
from typing import Optional

import cv2

from .errors import StreamStartError
from .frame_renderer import FrameRenderer
from .gamepad import Gamepad
from .input_mapper import InputMapper, MapperSettings
from .robot_api import CommandDispatcher, MistyApi
from .stream_session import StreamConfig, StreamSession, StreamSessionManager

logger = logging.getLogger(__name__)


class TeleopClient:
    """Owns the frame loop and the collaborators it drives"""

    def __init__(self, api: MistyApi, stream_config: StreamConfig = None,
                 mapper_settings: MapperSettings = None, gamepad: Gamepad = None,
                 renderer: FrameRenderer = None, session_manager: StreamSessionManager = None,
                 fps: float = 60.0):
        self.api = api
        self.stream_config = stream_config or StreamConfig()
        self.fps = fps

        # Components
        self.dispatcher = CommandDispatcher(api)
        self.mapper = InputMapper(self.dispatcher, mapper_settings)
        self.gamepad = gamepad or Gamepad()
        self.renderer = renderer or FrameRenderer(self.stream_config.width, self.stream_config.height)
        self.session_manager = session_manager or StreamSessionManager(api)
        self.session: Optional[StreamSession] = None

        self.running = False
        self.frames_ticked = 0

    def start_video(self) -> bool:
        try:
            self.session = self.session_manager.start(self.stream_config)
        except StreamStartError as e:
            logger.error(f"❌ {e}")
            return False
        self.session.add_close_listener(lambda session: logger.info("📴 Video stream ended"))
        self.session.start_receiving()
        return True

    def tick(self):
        """One frame: poll input, feed the mapper, draw the newest frame"""
        self.frames_ticked += 1
        axes = self.gamepad.poll()
        if axes is not None:
            self.mapper.on_frame(axes)

        if self.session is not None:
            data = self.session.get_frame()
            if data is not None:
                self.renderer.draw(data)

    def handle_key(self, key: int) -> bool:
        """Returns False when the loop should stop"""
        if key == ord('q') or key == 27:
            return False
        if key == ord('s') and self.renderer.last_frame is not None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filename = f"screenshot_{timestamp}.jpg"
            cv2.imwrite(filename, self.renderer.last_frame)
            logger.info(f"📸 Screenshot saved: {filename}")
        elif key == ord('c'):
            self.mapper.reset()
            logger.info("Head orientation reset")
        return True

    def run(self, video: bool = True, max_frames: Optional[int] = None):
        """Run the frame loop until 'q', Ctrl+C or max_frames ticks"""
        if video:
            self.start_video()

        self.dispatcher.start()
        self.running = True
        frame_period = 1.0 / self.fps

        print("\n🎮 Teleop started!")
        print("📋 Controls:")
        print("  Left stick  - Drive")
        print("  Right stick - Head")
        print("  'q' / ESC   - Quit")
        print("  's'         - Save screenshot")
        print("  'c'         - Reset head orientation")
        print()

        try:
            while self.running:
                started = time.monotonic()
                self.tick()

                if not self.handle_key(self.renderer.poll_key()):
                    break
                if max_frames is not None and self.frames_ticked >= max_frames:
                    break

                remaining = frame_period - (time.monotonic() - started)
                if remaining > 0:
                    time.sleep(remaining)
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()

    def stop(self):
        """Stop all components"""
        self.running = False
        if self.session is not None:
            self.session.close()
        self.dispatcher.stop()
        self.gamepad.close()
        self.renderer.close()
        logger.info("Teleop stopped")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Misty gamepad teleop and video client',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s 192.168.1.42
  %(prog)s 192.168.1.42 --quality 60 --width 320 --height 480
  %(prog)s 192.168.1.42 --no-video --frames-per-command 60
  %(prog)s 192.168.1.42 --restart
        """
    )

    parser.add_argument('robot_ip',
                        help='IP address of the Misty robot')
    parser.add_argument('--http-port', type=int, default=None,
                        help='REST API port (default: 80)')
    parser.add_argument('--stream-port', type=int, default=5678,
                        help='Video WebSocket port (default: 5678)')
    parser.add_argument('--quality', type=int, default=100,
                        help='JPEG quality 1-100 (default: 100)')
    parser.add_argument('--width', type=int, default=400,
                        help='Video width in pixels (default: 400)')
    parser.add_argument('--height', type=int, default=540,
                        help='Video height in pixels (default: 540)')
    parser.add_argument('--deadzone', type=float, default=0.1,
                        help='Stick deadzone (default: 0.1)')
    parser.add_argument('--sensitivity', type=float, default=0.02,
                        help='Head sensitivity per frame (default: 0.02)')
    parser.add_argument('--frames-per-command', type=int, default=180,
                        help='Frames between two commands on one channel (default: 180)')
    parser.add_argument('--fps', type=float, default=60.0,
                        help='Frame loop rate (default: 60)')
    parser.add_argument('--joystick', type=int, default=0,
                        help='pygame joystick index (default: 0)')
    parser.add_argument('--timeout', type=float, default=5.0,
                        help='HTTP request timeout in seconds (default: 5)')
    parser.add_argument('--no-video', action='store_true',
                        help='Drive only, do not start the video stream')
    parser.add_argument('--restart', action='store_true',
                        help='Send a reboot request and exit')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Debug logging')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    api = MistyApi(args.robot_ip, port=args.http_port, timeout=args.timeout)

    if args.restart:
        StreamSessionManager(api).restart()
        print(f"🔁 Restart requested for {args.robot_ip}")
        return 0

    stream_config = StreamConfig(
        port=args.stream_port,
        width=args.width,
        height=args.height,
        quality=args.quality,
    )
    mapper_settings = MapperSettings(
        deadzone=args.deadzone,
        sensitivity=args.sensitivity,
        frames_per_command=args.frames_per_command,
    )

    print("=" * 60)
    print("🤖 Misty Teleop")
    print("=" * 60)
    print(f"📡 Robot:   {api.base_url}")
    print(f"🎥 Video:   {'off' if args.no_video else f'{args.width}x{args.height} q{args.quality} port {args.stream_port}'}")
    print(f"🎮 Deadzone: {args.deadzone}  Sensitivity: {args.sensitivity}")
    print(f"⏱️ Command every {args.frames_per_command} frames @ {args.fps} fps")
    print("=" * 60)

    client = TeleopClient(
        api,
        stream_config=stream_config,
        mapper_settings=mapper_settings,
        gamepad=Gamepad(args.joystick),
        fps=args.fps,
    )
    try:
        client.run(video=not args.no_video)
    finally:
        api.close()
    print("👋 Goodbye!")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
