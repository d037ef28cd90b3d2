# app.py - PixelBoard: shared W×H color canvas, web + tty
# - GET /grid returns the whole grid, POST /pixel paints one cell.
# - Every accepted pixel is written to the JSON snapshot, then broadcast on /ws.
# - CLI/env sizing: --cols/--rows, storage: --data-file, bind: --host/--port
import argparse
import logging
import os
from typing import Any, Tuple

import uvicorn
from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.websockets import WebSocketDisconnect

from grid_persistence import SnapshotFile
from grid_store import GridStore
from live_broadcast import Broadcaster, LiveSession, SessionRegistry, pixel_update

logger = logging.getLogger(__name__)

DEFAULT_COLS = 500
DEFAULT_ROWS = 500
DEFAULT_PORT = 3000
DEFAULT_DATA_FILE = "grid_data.json"


class InvalidRequest(ValueError):
    """A pixel write the server refuses. str(exc) is the client-facing message."""


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def validate_pixel(payload: Any, width: int, height: int) -> Tuple[int, int, str]:
    """Check a {x, y, color} body in order and return the parsed triple.

    Raises InvalidRequest on the first failing check.
    """
    if not isinstance(payload, dict):
        raise InvalidRequest("Invalid pixel data. Body must be a JSON object.")
    x, y, color = payload.get("x"), payload.get("y"), payload.get("color")
    if x is None or y is None:
        raise InvalidRequest("Invalid pixel data. Coordinates missing.")
    if not isinstance(color, str) or not color:
        raise InvalidRequest("Invalid pixel data. Color missing.")
    if not _is_int(x) or not 0 <= x < width:
        raise InvalidRequest(f"Invalid pixel data. x must be an integer in [0, {width}).")
    if not _is_int(y) or not 0 <= y < height:
        raise InvalidRequest(f"Invalid pixel data. y must be an integer in [0, {height}).")
    return x, y, color


def _cors_origins(value: str):
    value = (value or "").strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


def make_app(cols: int, rows: int, data_file, scale: int = 2, cors_origins: str = "*"):
    app = FastAPI(title="PixelBoard")
    GRID_W = int(cols)
    GRID_H = int(rows)
    SCALE = max(1, int(scale))

    store = GridStore(GRID_W, GRID_H)
    snapshot = SnapshotFile(data_file, store)
    registry = SessionRegistry()
    broadcaster = Broadcaster(registry)

    result = snapshot.load()
    logger.info("Startup grid: %s (%s)", result.value, snapshot.path)

    app.state.store = store
    app.state.snapshot = snapshot
    app.state.registry = registry
    app.state.broadcaster = broadcaster

    origins = _cors_origins(cors_origins)
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=origins != ["*"],
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset='utf-8'>
  <title>PixelBoard - __GRID_W__×__GRID_H__</title>
  <style>
    html,body{margin:0;height:100%;background:#111;color:#eee;font-family:sans-serif}
    #wrap{padding:16px}
    #c{border:1px solid #444;background:#fff;image-rendering:pixelated;cursor:crosshair}
    .row{display:flex;gap:12px;align-items:center;margin-top:8px}
    .status{opacity:.85}
  </style>
</head>
<body>
<div id="wrap">
  <h3>PixelBoard - __GRID_W__×__GRID_H__</h3>
  <canvas id="c" width="__GRID_W__" height="__GRID_H__"></canvas>
  <div class="row">
    <span class="status" id="status">WS: connecting…</span>
    <input type="color" id="color" value="#000000">
  </div>
  <p class="status">Click paints one cell with the picked color. Cells are scaled ×__SCALE__ in CSS.</p>
</div>
<script>
const W=__GRID_W__, H=__GRID_H__, SCALE=__SCALE__;
const c=document.getElementById('c');
const ctx=c.getContext('2d', {alpha:false});
ctx.imageSmoothingEnabled=false;
c.style.width=(W*SCALE)+'px';
c.style.height=(H*SCALE)+'px';

function drawPixel(x,y,color){
  if(x<0||y<0||x>=W||y>=H) return;
  ctx.fillStyle = color;
  ctx.fillRect(x,y,1,1);
}

async function loadGrid(){
  const grid = await (await fetch('/grid')).json();
  for(let y=0;y<grid.length;y++) for(let x=0;x<grid[y].length;x++) drawPixel(x,y,grid[y][x]);
}

const ws=new WebSocket((location.protocol==='https:'?'wss':'ws')+'://'+location.host+'/ws');
const statusEl=document.getElementById('status');
ws.onopen = ()=> { statusEl.textContent='WS: connected'; loadGrid(); };
ws.onclose = ()=> statusEl.textContent='WS: disconnected';
ws.onerror = ()=> statusEl.textContent='WS: error';
ws.onmessage = ev => {
  const m = JSON.parse(ev.data);
  if(m.type==='pixelUpdate') drawPixel(m.x,m.y,m.color);
};

function clamp(n,min,max){return Math.max(min,Math.min(max,n));}
c.addEventListener('mousedown', async e=>{
  const r=c.getBoundingClientRect();
  const x = clamp(Math.floor((e.clientX - r.left) * (c.width / r.width)),0,W-1);
  const y = clamp(Math.floor((e.clientY - r.top)  * (c.height / r.height)),0,H-1);
  const color = document.getElementById('color').value.toUpperCase();
  try{
    await fetch('/pixel',{method:'POST',headers:{'Content-Type':'application/json'},
                          body:JSON.stringify({x,y,color})});
  }catch(err){}
});
</script>
</body>
</html>"""

    HTML = (HTML_TEMPLATE
            .replace("__GRID_W__", str(GRID_W))
            .replace("__GRID_H__", str(GRID_H))
            .replace("__SCALE__", str(SCALE)))

    @app.get("/", response_class=HTMLResponse)
    async def index():
        return HTML

    @app.get("/grid")
    async def get_grid():
        return JSONResponse(store.get())

    @app.post("/pixel")
    async def post_pixel(request: Request):
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        try:
            x, y, color = validate_pixel(payload, GRID_W, GRID_H)
        except InvalidRequest as e:
            return JSONResponse({"message": str(e)}, status_code=400)

        store.set_pixel(x, y, color)
        logger.info("Pixel updated: (%d, %d) to %s", x, y, color)
        # saved before anyone hears about it; a failed save is only logged
        snapshot.save()
        await broadcaster.publish(pixel_update(x, y, color))
        return {"message": "Pixel updated successfully"}

    @app.websocket("/ws")
    async def ws_endpoint(ws: WebSocket):
        await ws.accept()
        session = LiveSession(ws)
        registry.on_connect(session)
        try:
            await session.send({"type": "hello", "session": session.id, "w": GRID_W, "h": GRID_H})
            while True:
                # outbound only; text or binary frames from the client are ignored
                msg = await ws.receive()
                if msg["type"] == "websocket.disconnect":
                    break
        except WebSocketDisconnect:
            pass
        finally:
            registry.on_disconnect(session)

    return app


def build_parser():
    ap = argparse.ArgumentParser(description="PixelBoard shared canvas server")
    ap.add_argument("--cols", "-c", type=int, default=int(os.getenv("CANVAS_WIDTH", DEFAULT_COLS)),
                    help="Grid width in cells")
    ap.add_argument("--rows", "-r", type=int, default=int(os.getenv("CANVAS_HEIGHT", DEFAULT_ROWS)),
                    help="Grid height in cells")
    ap.add_argument("--data-file", default=os.getenv("CANVAS_DATA_FILE", DEFAULT_DATA_FILE),
                    help="JSON snapshot file")
    ap.add_argument("--scale", "-s", type=int, default=2, help="Web CSS scale (px per cell)")
    ap.add_argument("--host", default="127.0.0.1", help="Bind host")
    ap.add_argument("--port", "-p", type=int, default=int(os.getenv("CANVAS_PORT", DEFAULT_PORT)),
                    help="Bind port")
    ap.add_argument("--cors-origins", default=os.getenv("CORS_ORIGINS", "*"),
                    help='"*" or a comma-separated origin list')
    ap.add_argument("--log-level", default="INFO", help="Logging level")
    return ap


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = make_app(args.cols, args.rows, args.data_file, scale=args.scale, cors_origins=args.cors_origins)
    logger.info("Server running on http://%s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
