"""
pygame-backed gamepad reader

Exposes the four stick axes (left X, left Y, right X, right Y) of one
joystick as a list in [-1, 1], or None while no gamepad is connected.
"""

import logging
from typing import List, Optional

import pygame

logger = logging.getLogger(__name__)

NUM_STICK_AXES = 4


class Gamepad:
    def __init__(self, index: int = 0):
        self.index = index
        self.joystick = None
        self._initialized = False

    def init(self):
        if not self._initialized:
            pygame.init()
            pygame.joystick.init()
            self._initialized = True

    @property
    def connected(self) -> bool:
        return self.joystick is not None

    def connect(self) -> bool:
        """Open the configured joystick if one is plugged in"""
        self.init()
        if self.joystick is not None:
            return True
        if pygame.joystick.get_count() <= self.index:
            return False

        joystick = pygame.joystick.Joystick(self.index)
        joystick.init()
        if joystick.get_numaxes() < NUM_STICK_AXES:
            logger.warning(f"Joystick '{joystick.get_name()}' has only "
                           f"{joystick.get_numaxes()} axes, need {NUM_STICK_AXES}")
            return False

        self.joystick = joystick
        logger.info(f"🎮 Gamepad connected: {joystick.get_name()}")
        return True

    def poll(self) -> Optional[List[float]]:
        """Current stick axes, or None if no gamepad is available"""
        self.init()
        for event in pygame.event.get():
            if event.type == pygame.JOYDEVICEREMOVED:
                self._disconnect()
        if self.joystick is None and not self.connect():
            return None

        try:
            return [self.joystick.get_axis(i) for i in range(NUM_STICK_AXES)]
        except pygame.error as e:
            logger.warning(f"Gamepad read failed: {e}")
            self._disconnect()
            return None

    def _disconnect(self):
        if self.joystick is not None:
            logger.info("🎮 Gamepad disconnected")
        self.joystick = None

    def close(self):
        self._disconnect()
        if self._initialized:
            pygame.joystick.quit()
            self._initialized = False
