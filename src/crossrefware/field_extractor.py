"""Extraction of author-supplied identifier annotations from citations."""
from __future__ import annotations

import re
from dataclasses import replace
from typing import Dict, Tuple

from .models import CitationRecord
from .normalization import normalize

# (annotation command, field name), in scan order
ANNOTATIONS: Tuple[Tuple[str, str], ...] = (
    ("arxiv", "arxiv"),
    ("mr", "mrnumber"),
    ("zbl", "zbl"),
    ("doi", "doi"),
)


def _annotation_pattern(command: str) -> "re.Pattern[str]":
    return re.compile(r"\\%s\s*\{([^}]+)\}\.?" % command)


PATTERNS = {field: _annotation_pattern(command) for command, field in ANNOTATIONS}


class FieldExtractor:
    """Move ``\\arxiv``, ``\\mr``, ``\\zbl`` and ``\\doi`` annotations into fields.

    Only the first annotation of each kind is captured; later duplicates stay
    in the text.
    """

    def extract(self, record: CitationRecord) -> CitationRecord:
        text = record.text
        fields: Dict[str, str] = dict(record.extracted_fields)
        for _command, field in ANNOTATIONS:
            match = PATTERNS[field].search(text)
            if not match:
                continue
            value = match.group(1).strip()
            if value.endswith("."):
                value = value[:-1]
            fields[field] = value
            text = text[: match.start()] + text[match.end():]
        text = re.sub(r"\s+", " ", text).strip()
        return replace(
            record,
            text=text,
            normalized_text=normalize(text),
            extracted_fields=fields,
        )
