"""Tests for JPEG frame decoding and drawing."""

from __future__ import annotations

import cv2
import numpy as np
import pytest

from misty_client import frame_renderer
from misty_client.frame_renderer import FrameRenderer, decode_frame, fit_frame


def jpeg_bytes(width: int = 64, height: int = 48) -> bytes:
    image = np.full((height, width, 3), 128, dtype=np.uint8)
    ok, buffer = cv2.imencode(".jpg", image)
    assert ok
    return buffer.tobytes()


class TestDecodeFrame:

    def test_decodes_jpeg(self) -> None:
        frame = decode_frame(jpeg_bytes(64, 48))
        assert frame.shape == (48, 64, 3)

    def test_garbage_is_none(self) -> None:
        assert decode_frame(b"not a jpeg") is None

    def test_empty_is_none(self) -> None:
        assert decode_frame(b"") is None


class TestFitFrame:

    def test_resizes_to_canvas(self) -> None:
        frame = np.zeros((48, 64, 3), dtype=np.uint8)
        assert fit_frame(frame, 400, 540).shape == (540, 400, 3)

    def test_same_size_is_untouched(self) -> None:
        frame = np.zeros((540, 400, 3), dtype=np.uint8)
        assert fit_frame(frame, 400, 540) is frame


class TestFrameRenderer:

    @pytest.fixture
    def shown(self, monkeypatch):
        shown = []
        monkeypatch.setattr(frame_renderer.cv2, "namedWindow", lambda name: None)
        monkeypatch.setattr(frame_renderer.cv2, "imshow", lambda name, frame: shown.append((name, frame.shape)))
        monkeypatch.setattr(frame_renderer.cv2, "destroyWindow", lambda name: None)
        monkeypatch.setattr(frame_renderer.cv2, "waitKey", lambda delay: ord("q"))
        return shown

    def test_draw_scales_to_canvas(self, shown) -> None:
        renderer = FrameRenderer(width=400, height=540)

        assert renderer.draw(jpeg_bytes())

        assert shown == [("Misty Camera Feed", (540, 400, 3))]
        assert renderer.frames_drawn == 1
        assert renderer.last_frame.shape == (540, 400, 3)

    def test_bad_frame_is_skipped(self, shown) -> None:
        renderer = FrameRenderer()
        assert not renderer.draw(b"\x00\x01")
        assert shown == []
        assert renderer.frames_drawn == 0

    def test_poll_key_without_window(self, shown) -> None:
        assert FrameRenderer().poll_key() == 0xFF

    def test_poll_key_with_window(self, shown) -> None:
        renderer = FrameRenderer()
        renderer.draw(jpeg_bytes())
        assert renderer.poll_key() == ord("q")
        renderer.close()
        assert renderer.poll_key() == 0xFF
