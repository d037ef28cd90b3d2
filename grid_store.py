# grid_store.py - authoritative in-memory pixel grid
# - grid[y][x] holds a "#RRGGBB" string
# - fixed W×H, never resized; one lock guards every read and write
import logging
import threading
from typing import Any, List

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#FFFFFF"

Grid = List[List[str]]


def is_grid_shape(data: Any, width: int, height: int) -> bool:
    """True iff data is exactly `height` rows of exactly `width` non-empty color strings."""
    if not isinstance(data, list) or len(data) != height:
        return False
    for row in data:
        if not isinstance(row, list) or len(row) != width:
            return False
        if not all(isinstance(c, str) and c for c in row):
            return False
    return True


class GridStore:
    def __init__(self, width: int, height: int, default_color: str = DEFAULT_COLOR):
        self.width = int(width)
        self.height = int(height)
        self.default_color = default_color
        self._lock = threading.Lock()
        self._grid: Grid = []
        self.initialize_default()

    def initialize_default(self) -> None:
        with self._lock:
            self._grid = [[self.default_color] * self.width for _ in range(self.height)]
        logger.info("Default %dx%d grid initialized (%s)", self.width, self.height, self.default_color)

    def load(self, snapshot: Any) -> bool:
        """Replace the whole grid with snapshot. Returns False and leaves the grid alone on a shape mismatch."""
        if not is_grid_shape(snapshot, self.width, self.height):
            return False
        rows = [list(row) for row in snapshot]
        with self._lock:
            self._grid = rows
        return True

    def get(self) -> Grid:
        # copy: callers can't reach the live rows
        with self._lock:
            return [list(row) for row in self._grid]

    def get_pixel(self, x: int, y: int) -> str:
        with self._lock:
            return self._grid[y][x]

    def set_pixel(self, x: int, y: int, color: str) -> None:
        # bounds are the caller's job
        with self._lock:
            self._grid[y][x] = color
