from __future__ import annotations

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class LayoutCursor:
    """
    Vertical drawing position on the active page.

    ``ensure_space`` is the only place that decides a section no longer fits
    and moves the cursor to the top of the next page. The item table is drawn
    by the backend, which paginates it on its own, so the cursor is re-synced
    afterwards with ``update_from_table``.
    """

    def __init__(self, page_height: float, margin: float):
        if margin * 2 >= page_height:
            raise ValueError("margin leaves no printable area")
        self.page_height = page_height
        self.margin = margin
        self.page_index = 0
        self.y = margin

    @property
    def bottom(self) -> float:
        return self.page_height - self.margin

    @property
    def remaining(self) -> float:
        return self.bottom - self.y

    @property
    def page_count(self) -> int:
        return self.page_index + 1

    def advance(self, amount: float) -> None:
        self.y += amount

    def reset(self) -> None:
        self.y = self.margin

    def ensure_space(self, required_height: float) -> bool:
        """Break to a new page when ``required_height`` does not fit below ``y``."""
        if self.y + required_height <= self.bottom:
            return False
        if self.y <= self.margin:
            # Already at the top of a page: a new page would not help.
            logger.warning(
                "Section of %.1fmm is taller than a page (%.1fmm) and will overflow.",
                required_height,
                self.bottom - self.margin,
            )
            return False
        self.page_index += 1
        self.reset()
        return True

    def update_from_table(self, table_final_y: float, page_index: Optional[int] = None) -> None:
        if page_index is not None:
            if page_index < self.page_index:
                raise ValueError("table cannot end on an earlier page")
            self.page_index = page_index
        self.y = table_final_y

    def __repr__(self) -> str:
        return f"LayoutCursor(page_index={self.page_index}, y={self.y:.2f})"
