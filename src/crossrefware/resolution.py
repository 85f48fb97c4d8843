"""First-match resolution of citations across the configured databases."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from pybtex.database import Entry

from .config import Settings
from .crossref import CrossrefResolver
from .errors import ConfigurationError
from .lookup import Fetcher
from .models import ARXIV, CROSSREF, MATHSCINET, ZBMATH, CitationRecord, SearchOrder
from .resolvers import ArxivResolver, MathSciNetResolver, Resolver, ZbMathResolver

logger = logging.getLogger(__name__)


def build_resolver(source: str, settings: Settings, fetcher: Optional[Fetcher] = None) -> Resolver:
    if source == MATHSCINET:
        return MathSciNetResolver(fetcher=fetcher, timeout=settings.timeout)
    if source == ZBMATH:
        return ZbMathResolver(fetcher=fetcher, timeout=settings.timeout)
    if source == ARXIV:
        return ArxivResolver(fetcher=fetcher, timeout=settings.timeout)
    if source == CROSSREF:
        return CrossrefResolver(
            fetcher=fetcher,
            timeout=settings.timeout,
            mode=settings.mode,
            email=settings.email,
            username=settings.username,
            password=settings.password,
            min_score=settings.crossref_min_score,
        )
    raise ConfigurationError(f"Unknown database {source!r}")


def merge_extracted_fields(entry: Entry, extracted: Mapping[str, str]) -> Entry:
    """Add locally annotated identifiers the database reply did not carry."""
    for field in ("mrnumber", "zbl", "doi"):
        value = extracted.get(field)
        if value and field not in entry.fields:
            entry.fields[field] = value
    arxiv_id = extracted.get("arxiv")
    if arxiv_id and "eprint" not in entry.fields:
        entry.fields["eprint"] = arxiv_id
        entry.fields["archiveprefix"] = "arXiv"
    return entry


class ResolutionOrchestrator:
    """Query resolvers in search order and keep the first answer."""

    def __init__(self, resolvers: Mapping[str, Resolver], order: SearchOrder):
        missing = [source for source in order if source not in resolvers]
        if missing:
            raise ConfigurationError(f"No resolver configured for {', '.join(missing)}")
        self.resolvers: Dict[str, Resolver] = dict(resolvers)
        self.order = order

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        order: Optional[SearchOrder] = None,
        fetcher: Optional[Fetcher] = None,
    ) -> "ResolutionOrchestrator":
        order = order or SearchOrder.parse(settings.search_order)
        settings.check_credentials(order)
        resolvers = {source: build_resolver(source, settings, fetcher) for source in order}
        return cls(resolvers, order)

    def resolve(self, record: CitationRecord) -> CitationRecord:
        if record.is_resolved:
            return record
        for source in self.order:
            entry = self.resolvers[source].lookup(record)
            if entry is None:
                logger.debug("%s: no match in %s", record.key, source)
                continue
            logger.info("%s: found in %s", record.key, source)
            merged = merge_extracted_fields(entry, record.extracted_fields)
            return replace(
                record,
                extracted_fields=dict(record.extracted_fields),
                resolved_record=merged,
                resolved_by=source,
            )
        logger.debug("%s: not found in any database", record.key)
        return record

    def iter_resolved(self, records: Iterable[CitationRecord]) -> Iterator[CitationRecord]:
        for record in records:
            yield self.resolve(record)

    def resolve_all(self, records: Iterable[CitationRecord]) -> List[CitationRecord]:
        return list(self.iter_resolved(records))

    def close(self) -> None:
        """Release the HTTP clients of every resolver."""
        for resolver in self.resolvers.values():
            resolver.close()


__all__ = ["ResolutionOrchestrator", "build_resolver", "merge_extracted_fields"]
