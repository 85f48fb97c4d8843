"""Utilities for splitting a thebibliography environment into citations."""
from __future__ import annotations

import re
from typing import Iterable, List, Optional

from .models import CitationRecord
from .normalization import normalize

BEGIN_PATTERN = re.compile(r"\\begin\s*\{thebibliography\}")
END_PATTERN = re.compile(r"\\end\s*\{thebibliography\}")
BIBITEM_PATTERN = re.compile(r"\\bibitem\s*(?:\[[^\]]*\])?\s*\{([^}]*)\}")


def contains_bibliography(lines: Iterable[str]) -> bool:
    """Return True if the text opens a thebibliography environment."""
    return any(BEGIN_PATTERN.search(line) for line in lines)


def strip_bibitem(text: str) -> str:
    return BIBITEM_PATTERN.sub("", text, count=1)


class CitationBlockExtractor:
    """Extract bibitems using the begin/end markers of the environment."""

    def extract(self, lines: Iterable[str]) -> List[CitationRecord]:
        records: List[CitationRecord] = []
        inside = False
        key: Optional[str] = None
        current: List[str] = []

        def flush() -> None:
            if key is not None:
                record = self._build(key, current)
                if record is not None:
                    records.append(record)

        for raw_line in lines:
            line = raw_line.rstrip("\r\n")
            if not inside:
                if BEGIN_PATTERN.search(line):
                    inside = True
                continue
            if END_PATTERN.search(line):
                flush()
                inside = False
                key, current = None, []
                continue
            match = BIBITEM_PATTERN.search(line)
            if match:
                flush()
                key, current = match.group(1).strip(), []
            if key is not None and line.strip():
                current.append(line)

        # an unterminated environment still yields its last item
        if inside:
            flush()
        return records

    @staticmethod
    def _build(key: str, lines: List[str]) -> Optional[CitationRecord]:
        text = strip_bibitem(" ".join(line.strip() for line in lines)).strip()
        if not text:
            return None
        return CitationRecord(
            key=key,
            raw_text=tuple(lines),
            text=text,
            normalized_text=normalize(text),
        )

    def extract_text(self, text: str) -> List[CitationRecord]:
        return self.extract(text.splitlines())


def extract_citations(lines: Iterable[str]) -> List[CitationRecord]:
    return CitationBlockExtractor().extract(lines)
