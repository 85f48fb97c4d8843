"""Data models for citation reconstruction and deposit workflows."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from pybtex.database import Entry

from .errors import ConfigurationError

ARXIV = "arxiv"
MATHSCINET = "mathscinet"
ZBMATH = "zbmath"
CROSSREF = "crossref"

SOURCE_LETTERS = {"a": ARXIV, "m": MATHSCINET, "z": ZBMATH, "d": CROSSREF}

SOURCE_ALIASES = {
    ARXIV: ARXIV,
    MATHSCINET: MATHSCINET,
    "mr": MATHSCINET,
    "mref": MATHSCINET,
    ZBMATH: ZBMATH,
    "zbl": ZBMATH,
    CROSSREF: CROSSREF,
    "doi": CROSSREF,
}


@dataclass
class CitationRecord:
    """One bibliography item.

    ``raw_text`` keeps the verbatim source lines for the audit comment and is
    never rewritten; ``text`` is the working copy that annotations are
    stripped from, and ``normalized_text`` is its plain-text rendering.
    """

    key: str
    raw_text: Tuple[str, ...]
    text: str = ""
    normalized_text: str = ""
    extracted_fields: Dict[str, str] = field(default_factory=dict)
    resolved_record: Optional[Entry] = None
    resolved_by: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.resolved_record is not None


@dataclass(frozen=True)
class SearchOrder:
    """Ordered sequence of databases to query; the first match wins."""

    sources: Tuple[str, ...]

    DEFAULT = "mzd"

    @classmethod
    def parse(cls, value: str | None) -> "SearchOrder":
        """Parse letter codes (``mzd``) or names (``mathscinet,crossref``)."""
        text = (value if value is not None else cls.DEFAULT).strip().lower()
        tokens = [tok for tok in re.split(r"[,\s]+", text) if tok]
        if not tokens:
            raise ConfigurationError("Empty search order")

        if len(tokens) == 1 and all(ch in SOURCE_LETTERS for ch in tokens[0]):
            names = [SOURCE_LETTERS[ch] for ch in tokens[0]]
        else:
            names = []
            for token in tokens:
                if token not in SOURCE_ALIASES:
                    raise ConfigurationError(f"Unknown database in search order: {token}")
                names.append(SOURCE_ALIASES[token])

        ordered: List[str] = []
        for name in names:
            if name not in ordered:
                ordered.append(name)
        return cls(tuple(ordered))

    def __iter__(self) -> Iterator[str]:
        return iter(self.sources)

    def __contains__(self, source: object) -> bool:
        return source in self.sources

    def __len__(self) -> int:
        return len(self.sources)


@dataclass
class AuthorSpec:
    """A single contributor of a deposited paper."""

    raw: str
    organization: bool = False
    orcid: Optional[str] = None
    given: Optional[str] = None
    von: Optional[str] = None
    family: Optional[str] = None
    suffix: Optional[str] = None

    @property
    def surname(self) -> str:
        return " ".join(part for part in (self.von, self.family) if part)


@dataclass
class PaperMetadata:
    """Metadata of one article read from its side-file."""

    title: str = ""
    authors: List[AuthorSpec] = field(default_factory=list)
    year: str = ""
    volume: str = ""
    issue: str = ""
    start_page: str = ""
    end_page: str = ""
    doi: str = ""
    paper_url: Optional[str] = None
    bibliography: List[CitationRecord] = field(default_factory=list)
    source: Optional[str] = None

    @property
    def issue_key(self) -> Tuple[str, str, str]:
        return (self.year, self.volume, self.issue)
