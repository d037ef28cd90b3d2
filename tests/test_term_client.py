"""Tests for the TTY client's pure helpers."""

import asyncio
from unittest.mock import MagicMock, patch

import pytest
import requests

from term_client import (
    WHITE,
    TermCanvas,
    nearest_palette_index,
    parse_hex_color,
    send_pixel,
    stop_task,
    ws_url,
)


def test_ws_url():
    assert ws_url("http://127.0.0.1:3000") == "ws://127.0.0.1:3000/ws"
    assert ws_url("https://example.org/") == "wss://example.org/ws"


def test_parse_hex_color():
    assert parse_hex_color("#112233") == (0x11, 0x22, 0x33)
    assert parse_hex_color("#GGGGGG") is None
    assert parse_hex_color("112233") is None
    assert parse_hex_color(None) is None


@pytest.mark.parametrize("color, index", [
    ("#000000", 0),
    ("#EE1010", 1),
    ("#10F020", 2),
    ("#0000AA", 4),
    ("#FFFFFF", 7),
    ("red", WHITE),
])
def test_nearest_palette_index(color, index):
    assert nearest_palette_index(color) == index


def test_canvas_load_and_apply():
    canvas = TermCanvas()
    canvas.load([["#FFFFFF", "#000000"], ["#FF0000", "#FFFFFF"]])
    assert (canvas.w, canvas.h) == (2, 2)
    assert canvas.cells == [[7, 0], [1, 7]]

    assert canvas.apply({"type": "pixelUpdate", "x": 1, "y": 1, "color": "#0000FF"}) is True
    assert canvas.cells[1][1] == 4
    # out of range and unknown messages are ignored
    assert canvas.apply({"type": "pixelUpdate", "x": 2, "y": 0, "color": "#000000"}) is False
    assert canvas.apply({"type": "other"}) is False


def test_hello_sizes_an_empty_canvas():
    canvas = TermCanvas()
    canvas.apply({"type": "hello", "session": "abc", "w": 3, "h": 2})
    assert canvas.cells == [[WHITE] * 3, [WHITE] * 3]


def test_send_pixel_posts_json():
    resp = MagicMock(status_code=200)
    with patch("term_client.requests.post", return_value=resp) as post:
        assert send_pixel("http://h:1/", 2, 3, "#112233", 1.0) is True
    post.assert_called_once_with("http://h:1/pixel", json={"x": 2, "y": 3, "color": "#112233"}, timeout=1.0)


def test_send_pixel_network_error():
    with patch("term_client.requests.post", side_effect=requests.ConnectionError("down")):
        assert send_pixel("http://h:1", 0, 0, "#000000", 1.0) is False


class TestStopTask:

    @pytest.mark.asyncio
    async def test_collects_failed_receiver(self, caplog):
        async def closed_socket():
            raise ConnectionResetError("peer went away")

        task = asyncio.create_task(closed_socket())
        await asyncio.sleep(0)
        await stop_task(task)
        assert task.done()
        assert "Live updates stopped" in caplog.text

    @pytest.mark.asyncio
    async def test_cancels_running_receiver(self):
        task = asyncio.create_task(asyncio.Event().wait())
        await stop_task(task)
        assert task.cancelled()
