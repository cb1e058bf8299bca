from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from document_engine.enums import DOCUMENT_PREFIXES, DocumentType
from document_engine.errors import ValidationError

SEQUENCE_WIDTH = 6

_PREFIX_TO_TYPE = {prefix: doc_type for doc_type, prefix in DOCUMENT_PREFIXES.items()}
_NUMBER_RE = re.compile(r"^(?P<prefix>[A-Z]+)-(?P<year>\d{4})-(?P<sequence>\d{%d,})$" % SEQUENCE_WIDTH)


def format_document_number(doc_type: Union[DocumentType, str], sequence: int, year: int) -> str:
    """Canonical document number, e.g. ``INV-2025-000123``."""
    prefix = DocumentType.from_value(doc_type).prefix
    return f"{prefix}-{int(year)}-{int(sequence):0{SEQUENCE_WIDTH}d}"


def parse_document_number(text: str) -> "DocumentNumber":
    match = _NUMBER_RE.match(str(text or "").strip())
    if not match:
        raise ValidationError(f"Malformed document number: {text!r}", field="id")
    doc_type = _PREFIX_TO_TYPE.get(match.group("prefix"))
    if doc_type is None:
        raise ValidationError(f"Unknown document prefix: {match.group('prefix')!r}", field="id")
    return DocumentNumber(doc_type, int(match.group("year")), int(match.group("sequence")))


@dataclass(frozen=True)
class DocumentNumber:
    doc_type: DocumentType
    year: int
    sequence: int

    def __str__(self) -> str:
        return format_document_number(self.doc_type, self.sequence, self.year)

    @property
    def text(self) -> str:
        return str(self)

    @classmethod
    def parse(cls, text: str) -> "DocumentNumber":
        return parse_document_number(text)
