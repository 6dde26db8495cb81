"""Gamepad teleop and video streaming client for the Misty robot"""

from .errors import MistyClientError, StreamStartError
from .input_mapper import (
    DriveCommand,
    HeadCommand,
    InputMapper,
    MapperSettings,
    MapperState,
    apply_deadzone,
    clamp,
    scale_to_command_range,
)
from .stream_session import SessionState, StreamConfig, StreamSession, StreamSessionManager

__version__ = "0.1.0"
