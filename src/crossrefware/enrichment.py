"""Add missing identifiers (DOI, MR number, Zbl id) to BibTeX databases."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from pybtex.database import BibliographyData, Entry

from .exporters import pad_mr_number
from .models import CROSSREF, MATHSCINET, ZBMATH
from .normalization import normalize
from .resolvers import Resolver

logger = logging.getLogger(__name__)

# database -> field it supplies
IDENTIFIER_FIELDS = {CROSSREF: "doi", MATHSCINET: "mrnumber", ZBMATH: "zbl"}

_QUERY_FIELDS = ("title", "journal", "booktitle", "publisher", "volume", "number", "year", "pages")


def entry_query(entry: Entry) -> str:
    """Render an entry as the kind of free-text reference the databases match."""
    parts = []
    authors = entry.persons.get("author") or entry.persons.get("editor") or []
    if authors:
        parts.append(", ".join(str(person) for person in authors))
    for field in _QUERY_FIELDS:
        value = entry.fields.get(field)
        if value:
            parts.append(str(value))
    return normalize(". ".join(part.rstrip(". ") for part in parts))


@dataclass
class EnrichmentResult:
    checked: int = 0
    added: int = 0
    skipped: int = 0


class IdentifierAdder:
    """Fill one identifier field in entries that do not have it yet."""

    def __init__(self, resolver: Resolver, field: Optional[str] = None):
        self.resolver = resolver
        self.field = field or IDENTIFIER_FIELDS[resolver.name]

    def enrich_entry(self, key: str, entry: Entry) -> bool:
        if entry.fields.get(self.field):
            return False
        query = entry_query(entry)
        if not query:
            return False
        try:
            found = self.resolver.resolve(query)
        except Exception as exc:
            logger.debug("%s: unusable %s reply: %s", key, self.resolver.name, exc)
            return False
        if found is None or not found.fields.get(self.field):
            logger.debug("%s: no %s found", key, self.field)
            return False
        value = str(found.fields[self.field])
        if self.field == "mrnumber":
            value = pad_mr_number(value)
        entry.fields[self.field] = value
        logger.info("%s: added %s = %s", key, self.field, value)
        return True

    def enrich(self, data: BibliographyData) -> EnrichmentResult:
        result = EnrichmentResult()
        for key, entry in data.entries.items():
            if entry.fields.get(self.field):
                result.skipped += 1
                continue
            result.checked += 1
            if self.enrich_entry(key, entry):
                result.added += 1
        return result
