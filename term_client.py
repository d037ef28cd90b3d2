# term_client.py - PixelBoard TTY client (view + paint over HTTP/WS)
# - GET /grid once, then follow pixelUpdate events on /ws
# - arrows move, 1-8 pick brush color, space/enter paints, q/esc quits
import argparse
import asyncio
import curses
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import requests
import websockets

logger = logging.getLogger(__name__)

# index == curses COLOR_* number
PALETTE: List[Tuple[str, Tuple[int, int, int]]] = [
    ("#000000", (0, 0, 0)),
    ("#FF0000", (255, 0, 0)),
    ("#00FF00", (0, 255, 0)),
    ("#FFFF00", (255, 255, 0)),
    ("#0000FF", (0, 0, 255)),
    ("#FF00FF", (255, 0, 255)),
    ("#00FFFF", (0, 255, 255)),
    ("#FFFFFF", (255, 255, 255)),
]
WHITE = 7


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="PixelBoard TTY client")
    ap.add_argument("--server", default="http://127.0.0.1:3000", help="Server base URL")
    ap.add_argument("--timeout", type=float, default=5.0, help="HTTP timeout in seconds")
    return ap.parse_args(argv)


def ws_url(base: str) -> str:
    base = base.rstrip("/")
    if base.startswith("https://"):
        return "wss://" + base[len("https://"):] + "/ws"
    if base.startswith("http://"):
        return "ws://" + base[len("http://"):] + "/ws"
    return base + "/ws"


def parse_hex_color(color: Any) -> Optional[Tuple[int, int, int]]:
    if not isinstance(color, str) or len(color) != 7 or color[0] != "#":
        return None
    try:
        return int(color[1:3], 16), int(color[3:5], 16), int(color[5:7], 16)
    except ValueError:
        return None


def nearest_palette_index(color: Any) -> int:
    """Closest of the 8 terminal colors by squared RGB distance. Unparseable colors show as white."""
    rgb = parse_hex_color(color)
    if rgb is None:
        return WHITE
    best, best_d = WHITE, None
    for i, (_, (r, g, b)) in enumerate(PALETTE):
        d = (rgb[0] - r) ** 2 + (rgb[1] - g) ** 2 + (rgb[2] - b) ** 2
        if best_d is None or d < best_d:
            best, best_d = i, d
    return best


class TermCanvas:
    """Local mirror of the server grid, as palette indices."""

    def __init__(self):
        self.w = 0
        self.h = 0
        self.cells: List[List[int]] = []

    def load(self, grid: List[List[str]]) -> None:
        self.h = len(grid)
        self.w = len(grid[0]) if grid else 0
        self.cells = [[nearest_palette_index(c) for c in row] for row in grid]

    def apply(self, msg: Dict[str, Any]) -> bool:
        t = msg.get("type")
        if t == "hello":
            if not self.cells:
                self.w, self.h = int(msg.get("w", 0)), int(msg.get("h", 0))
                self.cells = [[WHITE] * self.w for _ in range(self.h)]
            return False
        if t == "pixelUpdate":
            x, y = msg.get("x"), msg.get("y")
            if not (isinstance(x, int) and isinstance(y, int)):
                return False
            if 0 <= x < self.w and 0 <= y < self.h:
                self.cells[y][x] = nearest_palette_index(msg.get("color"))
                return True
        return False


def fetch_grid(base: str, timeout: float) -> List[List[str]]:
    r = requests.get(base.rstrip("/") + "/grid", timeout=timeout)
    r.raise_for_status()
    return r.json()


def send_pixel(base: str, x: int, y: int, color: str, timeout: float) -> bool:
    try:
        r = requests.post(base.rstrip("/") + "/pixel", json={"x": x, "y": y, "color": color}, timeout=timeout)
    except requests.RequestException as e:
        logger.warning("POST /pixel failed: %s", e)
        return False
    return r.status_code == 200


def init_colors():
    curses.start_color()
    for i in range(len(PALETTE)):
        curses.init_pair(i + 1, i, i)


def draw(stdscr, canvas: TermCanvas, view, cursor, brush: int):
    rows, cols = stdscr.getmaxyx()
    vw, vh = max(1, cols - 1), max(1, rows - 2)
    ox, oy = view
    for sy in range(min(vh, canvas.h - oy)):
        row = canvas.cells[oy + sy]
        for sx in range(min(vw, canvas.w - ox)):
            try: stdscr.addstr(1 + sy, sx, "█", curses.color_pair(row[ox + sx] + 1))
            except curses.error: pass
    msg = f"{canvas.w}x{canvas.h} • ({cursor[0]},{cursor[1]}) • brush {brush + 1}:{PALETTE[brush][0]} • q=quit"
    try: stdscr.addstr(0, 0, msg[:max(0, cols - 1)])
    except curses.error: pass
    try: stdscr.move(1 + cursor[1] - oy, cursor[0] - ox)
    except curses.error: pass
    stdscr.refresh()


def follow(view, cursor, size, span):
    """Scroll the viewport origin just enough to keep the cursor visible."""
    o = view
    if cursor < o: o = cursor
    elif cursor >= o + span: o = cursor - span + 1
    return max(0, min(o, max(0, size - span)))


async def recv_loop(ws, canvas: TermCanvas, dirty: asyncio.Event):
    async for raw in ws:
        if canvas.apply(json.loads(raw)):
            dirty.set()


async def stop_task(task: asyncio.Task) -> None:
    """Cancel task and collect its outcome, so a closed socket never goes unretrieved."""
    task.cancel()
    results = await asyncio.gather(task, return_exceptions=True)
    err = results[0]
    if isinstance(err, Exception):
        logger.warning("Live updates stopped: %r", err)


async def main(stdscr, args):
    curses.curs_set(1); stdscr.nodelay(True); stdscr.keypad(True)
    init_colors()

    canvas = TermCanvas()
    async with websockets.connect(ws_url(args.server)) as ws:
        # subscribe first so no update between fetch and follow is lost
        canvas.load(await asyncio.to_thread(fetch_grid, args.server, args.timeout))
        dirty = asyncio.Event(); dirty.set()
        task = asyncio.create_task(recv_loop(ws, canvas, dirty))
        x = y = 0; ox = oy = 0; brush = 0
        try:
            while True:
                if dirty.is_set():
                    dirty.clear()
                    rows, cols = stdscr.getmaxyx()
                    ox = follow(ox, x, canvas.w, max(1, cols - 1))
                    oy = follow(oy, y, canvas.h, max(1, rows - 2))
                    draw(stdscr, canvas, (ox, oy), (x, y), brush)
                k = stdscr.getch()
                if k == -1:
                    if task.done(): break
                    await asyncio.sleep(0.01); continue
                if k in (ord("q"), 27): break
                if k == curses.KEY_UP: y = max(0, y - 1)
                elif k == curses.KEY_DOWN: y = min(canvas.h - 1, y + 1)
                elif k == curses.KEY_LEFT: x = max(0, x - 1)
                elif k == curses.KEY_RIGHT: x = min(canvas.w - 1, x + 1)
                elif ord("1") <= k <= ord("8"): brush = k - ord("1")
                elif k in (ord(" "), 10, 13):
                    await asyncio.to_thread(send_pixel, args.server, x, y, PALETTE[brush][0], args.timeout)
                dirty.set()
        finally:
            await stop_task(task)


if __name__ == "__main__":
    args = parse_args()
    curses.wrapper(lambda scr: asyncio.run(main(scr, args)))
