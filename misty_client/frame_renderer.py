"""
Display of JPEG frames received from the robot's video socket
"""

import logging
from typing import Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


def decode_frame(data: bytes) -> Optional[np.ndarray]:
    """Decode one JPEG message to a BGR image, None if it is not a valid image"""
    if not data or isinstance(data, str):
        return None
    frame = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    if frame is None:
        logger.debug(f"Dropping undecodable frame ({len(data)} bytes)")
    return frame


def fit_frame(frame: np.ndarray, width: int, height: int) -> np.ndarray:
    """Stretch a frame to the canvas size"""
    if frame.shape[1] == width and frame.shape[0] == height:
        return frame
    return cv2.resize(frame, (width, height), interpolation=cv2.INTER_LINEAR)


class FrameRenderer:
    """Draws frames into an OpenCV window of a fixed size"""

    def __init__(self, width: int = 400, height: int = 540, window_name: str = "Misty Camera Feed"):
        self.width = width
        self.height = height
        self.window_name = window_name
        self.frames_drawn = 0
        self.last_frame: Optional[np.ndarray] = None
        self._window_open = False

    def draw(self, data: bytes) -> bool:
        frame = decode_frame(data)
        if frame is None:
            return False

        frame = fit_frame(frame, self.width, self.height)
        if not self._window_open:
            cv2.namedWindow(self.window_name)
            self._window_open = True
        cv2.imshow(self.window_name, frame)
        self.last_frame = frame
        self.frames_drawn += 1
        return True

    def poll_key(self) -> int:
        """Pump the window event loop; returns the pressed key (0xFF for none)"""
        if not self._window_open:
            return 0xFF
        return cv2.waitKey(1) & 0xFF

    def close(self):
        if self._window_open:
            cv2.destroyWindow(self.window_name)
            self._window_open = False
