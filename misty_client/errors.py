class MistyClientError(Exception):
    """Base class for errors raised by the Misty client"""


class StreamStartError(MistyClientError):
    """The robot refused to start a video stream, or its socket could not be opened"""
