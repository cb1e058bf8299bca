from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from document_engine.layout.backends import DEFAULT_TEXT, RenderBackend, TextStyle
from document_engine.models import BoxField


@dataclass(frozen=True)
class BoxMetrics:
    header_strip: float = 7.0
    top_padding: float = 2.0
    line_height: float = 5.0
    bottom_padding: float = 3.0
    text_inset: float = 3.0

    def content_width(self, box_width: float) -> float:
        return max(box_width - 2 * self.text_inset, 1.0)


class SectionSizer:
    """
    Pre-computes section heights before anything is drawn.

    Widths come from the backend's ``measure_text`` so wrapping decisions here
    match what the backend will draw.
    """

    def __init__(self, backend: RenderBackend, metrics: Optional[BoxMetrics] = None, style: TextStyle = DEFAULT_TEXT):
        self.backend = backend
        self.metrics = metrics or BoxMetrics()
        self.style = style

    def measure_text_block(self, text, max_width: float, style: Optional[TextStyle] = None) -> int:
        return len(self.backend.measure_text(text, max_width, style or self.style))

    def field_lines(self, field: BoxField, max_width: float) -> int:
        if not field.is_present:
            return 0
        return self.measure_text_block(field.text, self.metrics.content_width(max_width))

    def measure_box(self, fields: Iterable[BoxField], max_width: float) -> float:
        """Height of a titled box; fields without a value take no room."""
        m = self.metrics
        lines = sum(self.field_lines(f, max_width) for f in fields)
        return m.header_strip + m.top_padding + lines * m.line_height + m.bottom_padding

    def measure_pair(self, left: Iterable[BoxField], right: Iterable[BoxField], width: float) -> float:
        return max(self.measure_box(left, width), self.measure_box(right, width))

    def measure_paragraphs(self, text, max_width: float, line_height: float = 4.0, style: Optional[TextStyle] = None) -> float:
        return self.measure_text_block(text, max_width, style) * line_height
