"""
Gamepad-to-command mapping for the Misty robot
- Deadzone filtering and [-1, 1] -> [-100, 100] scaling of stick axes
- Head orientation accumulated from the right stick
- Head and drive commands throttled to one per N frames
"""

import math
import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

AXIS_MIN = -1
AXIS_MAX = 1
COMMAND_MIN = -100
COMMAND_MAX = 100

# Axis indices of a standard gamepad layout
DRIVE_X, DRIVE_Y, HEAD_X, HEAD_Y = 0, 1, 2, 3


@dataclass(frozen=True)
class HeadCommand:
    """Absolute head position request"""
    pitch: int
    yaw: int
    velocity: int

    def to_payload(self) -> dict:
        return {"Pitch": self.pitch, "Yaw": self.yaw, "Velocity": self.velocity}


@dataclass(frozen=True)
class DriveCommand:
    """Body velocity request"""
    linear_velocity: int
    angular_velocity: int

    def to_payload(self) -> dict:
        return {
            "LinearVelocity": self.linear_velocity,
            "AngularVelocity": self.angular_velocity,
        }


Command = Union[HeadCommand, DriveCommand]


@dataclass
class MapperSettings:
    deadzone: float = 0.1
    sensitivity: float = 0.02
    frames_per_command: int = 180
    head_velocity: int = 100


@dataclass
class MapperState:
    """Everything the mapper carries from one frame to the next"""
    head_orientation: List[float] = field(default_factory=lambda: [0.0, 0.0])
    head_frames: int = 0
    body_frames: int = 0


def apply_deadzone(value: float, deadzone: float) -> float:
    """Zero out values strictly inside (-deadzone, deadzone)"""
    if -deadzone < value < deadzone:
        return 0
    return value


def clamp(value, lo, hi):
    return max(lo, min(value, hi))


def scale_axis(value: float) -> int:
    # floor, not round: values just below centre land on -1
    return math.floor(
        (value - AXIS_MIN) / (AXIS_MAX - AXIS_MIN) * (COMMAND_MAX - COMMAND_MIN) + COMMAND_MIN
    )


def scale_to_command_range(x: float, y: float) -> Tuple[int, int]:
    """Map a stick pair from [-1, 1] to integer command units in [-100, 100]"""
    return scale_axis(x), scale_axis(y)


class InputMapper:
    """
    Turns per-frame stick samples into rate-limited robot commands.

    Must be driven from a single thread, once per frame tick. Every
    emitted command is handed to `sink.send()`; the sink is expected to
    deliver it without blocking (see robot_api.CommandDispatcher).
    """

    def __init__(self, sink=None, settings: MapperSettings = None):
        self.sink = sink
        self.settings = settings or MapperSettings()
        self.state = MapperState()

    @property
    def head_orientation(self) -> Tuple[float, float]:
        return tuple(self.state.head_orientation)

    def read_sticks(self, axes: Sequence[float]) -> List[float]:
        """Deadzone-filter the first four axes"""
        deadzone = self.settings.deadzone
        return [apply_deadzone(axes[i], deadzone) for i in (DRIVE_X, DRIVE_Y, HEAD_X, HEAD_Y)]

    def on_frame(self, axes: Sequence[float]) -> List[Command]:
        """
        Process one frame of input.

        Args:
            axes: at least four raw axis readings in [-1, 1]
                  (drive X, drive Y, head X, head Y)

        Returns:
            The commands emitted during this frame (possibly empty)
        """
        sticks = self.read_sticks(axes)

        head_delta = scale_to_command_range(sticks[HEAD_X], sticks[HEAD_Y])
        orientation = self.state.head_orientation
        for i in (0, 1):
            orientation[i] += head_delta[i] * self.settings.sensitivity
            orientation[i] = clamp(orientation[i], COMMAND_MIN, COMMAND_MAX)

        drive_x, drive_y = scale_to_command_range(sticks[DRIVE_X], sticks[DRIVE_Y])

        emitted = []
        head = self._move_head(math.trunc(orientation[1]), -math.trunc(orientation[0]))
        if head:
            emitted.append(head)
        drive = self._move_body(drive_y, drive_x)
        if drive:
            emitted.append(drive)
        return emitted

    def _move_head(self, pitch: int, yaw: int):
        self.state.head_frames += 1
        if self.state.head_frames < self.settings.frames_per_command:
            return None
        self.state.head_frames = 0
        command = HeadCommand(pitch=pitch, yaw=yaw, velocity=self.settings.head_velocity)
        self._emit(command)
        return command

    def _move_body(self, linear_velocity: int, angular_velocity: int):
        self.state.body_frames += 1
        if self.state.body_frames < self.settings.frames_per_command:
            return None
        self.state.body_frames = 0
        command = DriveCommand(linear_velocity=linear_velocity, angular_velocity=angular_velocity)
        self._emit(command)
        return command

    def _emit(self, command: Command):
        logger.debug(f"Emitting {command}")
        if self.sink is not None:
            self.sink.send(command)

    def reset(self):
        """Forget accumulated head orientation and frame counts"""
        self.state = MapperState()
