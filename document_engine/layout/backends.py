"""
Rendering backends.

The composer only talks to the small drawing contract defined by
``RenderBackend``. Two implementations ship with the engine:

- ``RecordingBackend`` keeps an ordered list of drawing operations (the
  document's drawing plan) which can later be replayed onto any backend.
- ``FpdfBackend`` draws straight into an fpdf2 document.

Both measure text with fpdf2's core-font metrics so a plan recorded once lays
out identically when replayed onto a PDF.
"""
from __future__ import annotations

import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from fpdf import FPDF

from document_engine.models import ImageAsset


Color = Tuple[int, int, int]

COLOR_BLACK: Color = (0, 0, 0)
COLOR_WHITE: Color = (255, 255, 255)


@dataclass(frozen=True)
class TextStyle:
    size: float = 9
    style: str = ""
    color: Color = COLOR_BLACK
    family: str = "helvetica"

    def with_(self, **changes: Any) -> "TextStyle":
        values = {"size": self.size, "style": self.style, "color": self.color, "family": self.family}
        values.update(changes)
        return TextStyle(**values)


DEFAULT_TEXT = TextStyle()


@dataclass(frozen=True)
class TableColumn:
    title: str
    ratio: float
    align: str = "left"


@dataclass
class TableSpec:
    columns: Sequence[TableColumn]
    rows: Sequence[Sequence[str]]
    style: TextStyle = DEFAULT_TEXT
    header_style: TextStyle = TextStyle(size=9, style="B", color=COLOR_WHITE)
    header_fill: Color = (0, 153, 255)
    zebra_fill: Optional[Color] = (245, 247, 250)
    line_color: Color = (150, 150, 150)
    line_height: float = 4.0
    cell_padding: float = 2.0
    empty_text: str = "No items on this document."


@dataclass(frozen=True)
class TableResult:
    final_y: float
    page_index: int


@dataclass(frozen=True)
class DrawOp:
    kind: str
    page: int
    args: Dict[str, Any] = field(default_factory=dict)


def sanitize_text(text: Any) -> str:
    """Replace characters the core PDF fonts cannot encode (Latin-1 only)."""
    if text is None:
        return ""
    replacements = {
        "—": "-",
        "–": "-",
        "“": '"',
        "”": '"',
        "‘": "'",
        "’": "'",
        "…": "...",
        " ": " ",
    }
    text = str(text)
    for k, v in replacements.items():
        text = text.replace(k, v)
    return text.encode("latin-1", "replace").decode("latin-1")


def distribute_width(total: float, ratios: List[float], min_width: float = 10.0) -> List[float]:
    if not ratios:
        return []
    ratio_sum = sum(ratios)
    if ratio_sum <= 0:
        ratio_sum = len(ratios)
        ratios = [1.0] * len(ratios)

    widths = [max(min_width, (ratio / ratio_sum) * total) for ratio in ratios]
    diff = total - sum(widths)
    if abs(diff) > 1e-3:
        widths[-1] = max(min_width, widths[-1] + diff)
    return widths


def wrap_text(text: Any, max_width: float, width_of: Callable[[str], float]) -> List[str]:
    """
    Word-wrap ``text`` to ``max_width``; explicit newlines are kept.

    Words wider than a whole line are split by characters. Blank text wraps
    to no lines at all.
    """
    if text is None or not str(text).strip():
        return []
    if max_width <= 0:
        return str(text).splitlines()

    lines: List[str] = []
    for paragraph in str(text).splitlines():
        words = paragraph.split()
        if not words:
            lines.append("")
            continue
        line = ""
        for word in words:
            candidate = f"{line} {word}" if line else word
            if width_of(candidate) <= max_width:
                line = candidate
                continue
            if line:
                lines.append(line)
            while len(word) > 1 and width_of(word) > max_width:
                cut = len(word) - 1
                while cut > 1 and width_of(word[:cut]) > max_width:
                    cut -= 1
                lines.append(word[:cut])
                word = word[cut:]
            line = word
        lines.append(line)
    return lines


class RenderBackend:
    """Drawing contract used by the layout engine. Coordinates are millimetres, ``y`` grows downwards."""

    def __init__(self, page_width: float, page_height: float):
        self.page_width = page_width
        self.page_height = page_height
        self._metrics = FPDF(orientation="P", unit="mm", format=(page_width, page_height))

    # -- measurement -----------------------------------------------------

    def string_width(self, text: str, style: TextStyle = DEFAULT_TEXT) -> float:
        self._metrics.set_font(style.family, style.style, style.size)
        return self._metrics.get_string_width(sanitize_text(text))

    def measure_text(self, text: Any, max_width: float, style: TextStyle = DEFAULT_TEXT) -> List[str]:
        return wrap_text(sanitize_text(text) if text is not None else None, max_width, lambda s: self.string_width(s, style))

    # -- primitives --------------------------------------------------------

    def draw_text(
        self,
        text: str,
        x: float,
        y: float,
        style: TextStyle = DEFAULT_TEXT,
        align: str = "left",
        angle: float = 0,
    ) -> None:
        raise NotImplementedError

    def draw_rect(
        self,
        x: float,
        y: float,
        w: float,
        h: float,
        fill_color: Optional[Color] = None,
        draw_color: Optional[Color] = None,
        line_width: float = 0.1,
    ) -> None:
        raise NotImplementedError

    def draw_image(self, image: ImageAsset, x: float, y: float, w: float, h: float) -> None:
        raise NotImplementedError

    def add_page(self) -> None:
        raise NotImplementedError

    def get_page_count(self) -> int:
        raise NotImplementedError

    def set_page(self, page_index: int) -> None:
        raise NotImplementedError

    @property
    def current_page_index(self) -> int:
        return self.get_page_count() - 1

    def _aligned_x(self, text: str, x: float, style: TextStyle, align: str) -> float:
        if align == "right":
            return x - self.string_width(text, style)
        if align == "center":
            return x - self.string_width(text, style) / 2
        return x

    # -- composite: item table ------------------------------------------------

    def draw_table(
        self,
        table: TableSpec,
        x: float,
        y: float,
        width: float,
        top: float,
        bottom: float,
        on_new_page: Optional[Callable[[], None]] = None,
    ) -> TableResult:
        """
        Draw a table starting at ``y``, continuing on new pages as needed.

        The header row is repeated at ``top`` of every continuation page. Row
        heights follow the wrapped content, so the final position is only
        known once the table has been drawn.
        """
        widths = distribute_width(width, [col.ratio for col in table.columns])
        pad = table.cell_padding
        header_cells = [self.measure_text(col.title, w - 2 * pad, table.header_style) or [""] for col, w in zip(table.columns, widths)]
        header_height = max(len(c) for c in header_cells) * table.line_height + 2 * pad

        body = [
            [self.measure_text(value, w - 2 * pad, table.style) or [""] for value, w in zip(row, widths)]
            for row in table.rows
        ]
        row_heights = [max(len(c) for c in cells) * table.line_height + 2 * pad for cells in body]

        def new_page() -> float:
            self.add_page()
            if on_new_page is not None:
                on_new_page()
            return top

        first_row = row_heights[0] if row_heights else table.line_height + 2 * pad
        if y + header_height + first_row > bottom and y > top:
            y = new_page()

        y = self._draw_table_row(table, header_cells, widths, x, y, header_height, table.header_fill, table.header_style, header=True)

        if not body:
            empty_h = table.line_height + 2 * pad
            self.draw_rect(x, y, width, empty_h, draw_color=table.line_color)
            self.draw_text(table.empty_text, x + width / 2, y + pad + table.line_height * 0.8, table.style, align="center")
            return TableResult(final_y=y + empty_h, page_index=self.current_page_index)

        for idx, (cells, height) in enumerate(zip(body, row_heights)):
            if y + height > bottom and y > top + header_height:
                y = new_page()
                y = self._draw_table_row(table, header_cells, widths, x, y, header_height, table.header_fill, table.header_style, header=True)
            fill = table.zebra_fill if table.zebra_fill and idx % 2 == 1 else None
            y = self._draw_table_row(table, cells, widths, x, y, height, fill, table.style)

        return TableResult(final_y=y, page_index=self.current_page_index)

    def _draw_table_row(
        self,
        table: TableSpec,
        cells: List[List[str]],
        widths: List[float],
        x: float,
        y: float,
        height: float,
        fill: Optional[Color],
        style: TextStyle,
        header: bool = False,
    ) -> float:
        pad = table.cell_padding
        cell_x = x
        for col, lines, w in zip(table.columns, cells, widths):
            self.draw_rect(cell_x, y, w, height, fill_color=fill, draw_color=table.line_color)
            align = "center" if header else col.align
            if align == "right":
                anchor = cell_x + w - pad
            elif align == "center":
                anchor = cell_x + w / 2
            else:
                anchor = cell_x + pad
            for n, line in enumerate(lines):
                baseline = y + pad + table.line_height * n + table.line_height * 0.8
                self.draw_text(line, anchor, baseline, style, align=align)
            cell_x += w
        return y + height


class RecordingBackend(RenderBackend):
    """Records every drawing call as a ``DrawOp``; nothing is rendered."""

    def __init__(self, page_width: float = 210.0, page_height: float = 297.0):
        super().__init__(page_width, page_height)
        self.operations: List[DrawOp] = []
        self._page_count = 0
        self._page = -1

    def _record(self, kind: str, **args: Any) -> None:
        if self._page < 0:
            raise RuntimeError("No page open, call add_page() first")
        self.operations.append(DrawOp(kind, self._page, args))

    def draw_text(self, text, x, y, style=DEFAULT_TEXT, align="left", angle=0) -> None:
        self._record("draw_text", text=text, x=x, y=y, style=style, align=align, angle=angle)

    def draw_rect(self, x, y, w, h, fill_color=None, draw_color=None, line_width=0.1) -> None:
        self._record("draw_rect", x=x, y=y, w=w, h=h, fill_color=fill_color, draw_color=draw_color, line_width=line_width)

    def draw_image(self, image, x, y, w, h) -> None:
        self._record("draw_image", image=image, x=x, y=y, w=w, h=h)

    def add_page(self) -> None:
        self._page_count += 1
        self._page = self._page_count - 1

    def get_page_count(self) -> int:
        return self._page_count

    def set_page(self, page_index: int) -> None:
        if not 0 <= page_index < self._page_count:
            raise IndexError(f"page {page_index} does not exist")
        self._page = page_index

    @property
    def current_page_index(self) -> int:
        return self._page

    def ops_on_page(self, page_index: int, kind: Optional[str] = None) -> List[DrawOp]:
        return [op for op in self.operations if op.page == page_index and (kind is None or op.kind == kind)]

    def texts(self, page_index: Optional[int] = None) -> List[str]:
        return [
            op.args["text"]
            for op in self.operations
            if op.kind == "draw_text" and (page_index is None or op.page == page_index)
        ]

    def replay(self, target: RenderBackend) -> RenderBackend:
        """Draw the recorded plan onto ``target`` (which must start with no pages)."""
        while target.get_page_count() < self._page_count:
            target.add_page()
        current = None
        for op in self.operations:
            if op.page != current:
                target.set_page(op.page)
                current = op.page
            getattr(target, op.kind)(**op.args)
        if self._page_count:
            target.set_page(self._page_count - 1)
        return target


class FpdfBackend(RenderBackend):
    """Draws into an fpdf2 document; automatic page breaks are left to the layout engine."""

    def __init__(self, page_width: float = 210.0, page_height: float = 297.0):
        super().__init__(page_width, page_height)
        self.pdf = FPDF(orientation="P", unit="mm", format=(page_width, page_height))
        self.pdf.set_auto_page_break(False)
        self.pdf.set_margins(0, 0, 0)

    def _apply_style(self, style: TextStyle) -> None:
        self.pdf.set_font(style.family, style.style, style.size)
        self.pdf.set_text_color(*style.color)

    def draw_text(self, text, x, y, style=DEFAULT_TEXT, align="left", angle=0) -> None:
        safe = sanitize_text(text)
        self._apply_style(style)
        start_x = self._aligned_x(safe, x, style, align)
        if angle:
            with self.pdf.rotation(angle, x=x, y=y):
                self.pdf.text(start_x, y, safe)
        else:
            self.pdf.text(start_x, y, safe)

    def draw_rect(self, x, y, w, h, fill_color=None, draw_color=None, line_width=0.1) -> None:
        if fill_color is None and draw_color is None:
            return
        self.pdf.set_line_width(line_width)
        if fill_color is not None:
            self.pdf.set_fill_color(*fill_color)
        if draw_color is not None:
            self.pdf.set_draw_color(*draw_color)
        style = ("D" if draw_color is not None else "") + ("F" if fill_color is not None else "")
        self.pdf.rect(x, y, w, h, style=style)

    def draw_image(self, image, x, y, w, h) -> None:
        self.pdf.image(io.BytesIO(image.data), x=x, y=y, w=w, h=h)

    def add_page(self) -> None:
        self.pdf.add_page()

    def get_page_count(self) -> int:
        return self.pdf.pages_count

    def set_page(self, page_index: int) -> None:
        if not 0 <= page_index < self.get_page_count():
            raise IndexError(f"page {page_index} does not exist")
        if self.pdf.page == page_index + 1:
            return
        self.pdf.page = page_index + 1
        # Graphics state is per page: force font and colors to be emitted again.
        self.pdf.font_family = ""
        for setter in (self.pdf.set_fill_color, self.pdf.set_draw_color):
            setter(0)
            setter(255)

    @property
    def current_page_index(self) -> int:
        return self.pdf.page - 1

    def to_bytes(self) -> bytes:
        return bytes(self.pdf.output())

    def save(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.pdf.output(str(path))
        return path
