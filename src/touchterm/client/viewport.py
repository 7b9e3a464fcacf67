"""Terminal size from container geometry.

Derives how many character cells fit in the terminal container and
reports the result to a listener, normally the control channel's
resize notification.
"""

from __future__ import annotations

import logging
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

from touchterm.domain.models import TerminalGeometry

logger = logging.getLogger(__name__)

MIN_COLS = 20
MIN_ROWS = 6


class FontMetrics(BaseModel):
    """Size of one character cell in pixels."""

    model_config = ConfigDict(frozen=True)

    char_width: float = Field(default=9.0, gt=0)
    line_height: float = Field(default=17.0, gt=0)


class ViewportFitter:
    """Fits a terminal grid into a pixel container.

    Results never drop below ``min_cols`` x ``min_rows``, however small
    (or zero) the container is. Every fit is reported to the listener,
    whether or not the size changed.
    """

    def __init__(
        self,
        metrics: FontMetrics | None = None,
        min_cols: int = MIN_COLS,
        min_rows: int = MIN_ROWS,
        on_resize: Callable[[TerminalGeometry], None] | None = None,
    ) -> None:
        self._metrics = metrics or FontMetrics()
        self._min_cols = max(1, min_cols)
        self._min_rows = max(1, min_rows)
        self._on_resize = on_resize
        self._last: TerminalGeometry | None = None

    @property
    def last(self) -> TerminalGeometry | None:
        return self._last

    def clamp(self, cols: int, rows: int) -> TerminalGeometry:
        """Apply the minimum size to an already known cell count."""
        return TerminalGeometry(
            cols=max(self._min_cols, int(cols)),
            rows=max(self._min_rows, int(rows)),
        )

    def compute(self, width_px: float, height_px: float) -> TerminalGeometry:
        """Cells that fit in a container of the given pixel size."""
        cols = int(max(0.0, width_px) // self._metrics.char_width)
        rows = int(max(0.0, height_px) // self._metrics.line_height)
        return self.clamp(cols, rows)

    def fit(self, width_px: float, height_px: float) -> TerminalGeometry:
        """Compute the geometry for a container and notify the listener."""
        return self._report(self.compute(width_px, height_px))

    def fit_cells(self, cols: int, rows: int) -> TerminalGeometry:
        """Report a cell count measured directly, e.g. from a local tty."""
        return self._report(self.clamp(cols, rows))

    def _report(self, geometry: TerminalGeometry) -> TerminalGeometry:
        self._last = geometry
        logger.debug("Viewport fitted to %dx%d", geometry.cols, geometry.rows)
        if self._on_resize is not None:
            self._on_resize(geometry)
        return geometry
