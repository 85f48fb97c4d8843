"""Database resolvers for MathSciNet, zbMATH and arXiv."""
from __future__ import annotations

import html
import json
import logging
import re
import urllib.parse
from typing import Optional
from xml.etree import ElementTree

from pybtex.database import Entry, Person, parse_string
from pybtex.exceptions import PybtexError

from .exporters import apply_mr_padding
from .lookup import Fetcher, HttpFetcher
from .models import ARXIV, MATHSCINET, ZBMATH, CitationRecord

logger = logging.getLogger(__name__)


def parse_first_entry(bibtex: str) -> Optional[Entry]:
    """Return the first entry of a BibTeX string, or None if it does not parse."""
    try:
        data = parse_string(bibtex, "bibtex")
    except PybtexError as exc:
        logger.debug("Unparsable BibTeX reply: %s", exc)
        return None
    for entry in data.entries.values():
        return entry
    return None


class Resolver:
    """Base interface: turn a free-text query into a BibTeX entry or None."""

    name: str = "base"

    def __init__(self, fetcher: Optional[Fetcher] = None, timeout: float = 10.0):
        self.fetcher = fetcher or HttpFetcher()
        self.timeout = timeout

    def query_for(self, record: CitationRecord) -> str:
        return record.normalized_text

    def lookup(self, record: CitationRecord) -> Optional[Entry]:
        """Resolve a citation; a reply that cannot be understood is a miss."""
        try:
            return self._lookup(record)
        except Exception as exc:
            logger.debug("%s: unusable %s reply: %s", record.key, self.name, exc)
            return None

    def _lookup(self, record: CitationRecord) -> Optional[Entry]:
        query = self.query_for(record)
        if not query:
            return None
        return self.resolve(query)

    def resolve(self, query: str) -> Optional[Entry]:  # pragma: no cover - interface
        raise NotImplementedError

    def close(self) -> None:
        close = getattr(self.fetcher, "close", None)
        if callable(close):
            close()

    def _fetch(self, url: str) -> str:
        try:
            return self.fetcher(url, self.timeout) or ""
        except Exception as exc:
            logger.debug("%s lookup failed for %s: %s", self.name, url, exc)
            return ""


class MathSciNetResolver(Resolver):
    """Match a free-text reference with the AMS MRef service."""

    name = MATHSCINET
    BASE_URL = "https://mathscinet.ams.org/mathscinet-mref"
    PRE_PATTERN = re.compile(r"<pre>(.*?)</pre>", re.DOTALL | re.IGNORECASE)
    # MRef writes "@article {MR...,"
    ENTRY_TYPE_SPACE = re.compile(r"@(\w+)\s+\{")

    def resolve(self, query: str) -> Optional[Entry]:
        params = urllib.parse.urlencode({"ref": query, "dataType": "bibtex"})
        payload = self._fetch(f"{self.BASE_URL}?{params}")
        match = self.PRE_PATTERN.search(payload)
        if not match:
            return None
        bibtex = self.ENTRY_TYPE_SPACE.sub(r"@\1{", html.unescape(match.group(1)))
        entry = parse_first_entry(bibtex)
        if entry is None:
            return None
        return apply_mr_padding(entry)


class ZbMathResolver(Resolver):
    """Match a reference with the zbMATH citation matcher and fetch its BibTeX."""

    name = ZBMATH
    MATCH_URL = "https://zbmath.org/citationmatching/match"
    BIBTEX_URL = "https://zbmath.org/bibtex/{zbl}.bib"

    def resolve(self, query: str) -> Optional[Entry]:
        params = urllib.parse.urlencode({"q": query, "n": 1, "m": 1, "format": "json"})
        zbl = self._best_match(self._fetch(f"{self.MATCH_URL}?{params}"))
        if not zbl:
            return None
        payload = self._fetch(self.BIBTEX_URL.format(zbl=urllib.parse.quote(zbl)))
        entry = parse_first_entry(payload)
        if entry is None:
            return None
        if "zbl" not in entry.fields:
            entry.fields["zbl"] = zbl
        return entry

    @staticmethod
    def _best_match(payload: str) -> Optional[str]:
        if not payload:
            return None
        try:
            data = json.loads(payload)
        except ValueError:
            return None
        results = data.get("results") if isinstance(data, dict) else data
        if not isinstance(results, list) or not results:
            return None
        best = results[0]
        if not isinstance(best, dict):
            return None
        zbl = best.get("zbl_id") or best.get("zbl")
        return str(zbl).strip() if zbl else None


class ArxivResolver(Resolver):
    """Search the arXiv Atom API, by identifier when one was annotated."""

    name = ARXIV
    API_URL = "https://export.arxiv.org/api/query"
    NAMESPACES = {
        "atom": "http://www.w3.org/2005/Atom",
        "arxiv": "http://arxiv.org/schemas/atom",
    }
    MAX_TERMS = 12

    def _lookup(self, record: CitationRecord) -> Optional[Entry]:
        arxiv_id = record.extracted_fields.get("arxiv")
        if arxiv_id:
            return self.resolve_id(arxiv_id)
        return super()._lookup(record)

    def resolve(self, query: str) -> Optional[Entry]:
        terms = [word for word in re.findall(r"[^\W\d_]{3,}", query)][: self.MAX_TERMS]
        if not terms:
            return None
        search = " AND ".join(f"all:{term}" for term in terms)
        params = urllib.parse.urlencode({"search_query": search, "start": 0, "max_results": 1})
        return self._parse_feed(self._fetch(f"{self.API_URL}?{params}"))

    def resolve_id(self, arxiv_id: str) -> Optional[Entry]:
        arxiv_id = re.sub(r"^(?:arxiv:)", "", arxiv_id.strip(), flags=re.IGNORECASE)
        params = urllib.parse.urlencode({"id_list": arxiv_id, "max_results": 1})
        return self._parse_feed(self._fetch(f"{self.API_URL}?{params}"))

    @classmethod
    def _parse_feed(cls, payload: str) -> Optional[Entry]:
        if not payload:
            return None
        try:
            root = ElementTree.fromstring(payload)
        except ElementTree.ParseError:
            return None
        item = root.find("atom:entry", cls.NAMESPACES)
        if item is None:
            return None

        def text(path: str) -> str:
            node = item.find(path, cls.NAMESPACES)
            return " ".join((node.text or "").split()) if node is not None else ""

        identifier = text("atom:id")
        # the API reports query errors as a feed entry
        if not identifier or "/api/errors" in identifier:
            return None
        eprint = re.sub(r"v\d+$", "", identifier.rsplit("/abs/", 1)[-1])

        fields = {
            "title": text("atom:title"),
            "year": text("atom:published")[:4],
            "eprint": eprint,
            "archiveprefix": "arXiv",
            "url": f"https://arxiv.org/abs/{eprint}",
        }
        category = item.find("arxiv:primary_category", cls.NAMESPACES)
        if category is not None and category.get("term"):
            fields["primaryclass"] = category.get("term")
        doi = text("arxiv:doi")
        if doi:
            fields["doi"] = doi
        journal_ref = text("arxiv:journal_ref")
        if journal_ref:
            fields["note"] = journal_ref

        authors = []
        for author in item.findall("atom:author", cls.NAMESPACES):
            name = author.find("atom:name", cls.NAMESPACES)
            if name is not None and name.text and name.text.strip():
                try:
                    authors.append(Person(name.text.strip()))
                except PybtexError:
                    continue
        persons = {"author": authors} if authors else {}
        return Entry("misc", fields={k: v for k, v in fields.items() if v}, persons=persons)


__all__ = [
    "ArxivResolver",
    "MathSciNetResolver",
    "Resolver",
    "ZbMathResolver",
    "parse_first_entry",
]
