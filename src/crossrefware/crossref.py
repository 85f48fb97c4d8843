"""Crossref-backed DOI resolution."""
from __future__ import annotations

import json
import logging
import re
import urllib.parse
from typing import Dict, List, Optional

from pybtex.database import Entry, Person
from pybtex.exceptions import PybtexError

from .lookup import Fetcher, HttpFetcher
from .models import CROSSREF, CitationRecord
from .resolvers import Resolver

logger = logging.getLogger(__name__)

API_URL = "https://api.crossref.org/works"

_TYPE_MAP = {
    "journal-article": "article",
    "proceedings-article": "inproceedings",
    "book-chapter": "incollection",
    "book-section": "incollection",
    "book": "book",
    "monograph": "book",
    "edited-book": "book",
    "dissertation": "phdthesis",
    "report": "techreport",
    "posted-content": "misc",
}


def normalize_doi(doi: str) -> str:
    doi = doi.strip()
    doi = re.sub(r"^https?://(dx\.)?doi\.org/", "", doi, flags=re.IGNORECASE)
    doi = re.sub(r"^doi:\s*", "", doi, flags=re.IGNORECASE)
    return doi


def _issued_year(issued: object) -> Optional[str]:
    """Year of a Crossref date object: ``{"date-parts": [[2020, 5, 1]]}``."""
    if not isinstance(issued, dict):
        return None
    parts = issued.get("date-parts")
    if not isinstance(parts, list) or not parts:
        return None
    first = parts[0]
    if not isinstance(first, list) or not first:
        return None
    year = first[0]
    if isinstance(year, int) and not isinstance(year, bool):
        return str(year)
    if isinstance(year, str) and year.strip().isdigit():
        return year.strip()
    return None


class CrossrefResolver(Resolver):
    """Resolve citations against the Crossref REST API.

    Free mode identifies itself with the registered e-mail; paid mode
    authenticates every request with the member username and password.
    """

    name = CROSSREF

    def __init__(
        self,
        fetcher: Optional[Fetcher] = None,
        timeout: float = 10.0,
        mode: str = "free",
        email: str = "",
        username: str = "",
        password: str = "",
        min_score: float = 60.0,
    ):
        if fetcher is None:
            if mode == "paid":
                fetcher = HttpFetcher(auth=(username, password))
            else:
                fetcher = HttpFetcher(headers={"User-Agent": f"crossrefware/0.1 (mailto:{email})"})
        super().__init__(fetcher=fetcher, timeout=timeout)
        self.mode = mode
        self.email = email
        self.min_score = min_score

    def _lookup(self, record: CitationRecord) -> Optional[Entry]:
        doi = record.extracted_fields.get("doi")
        if doi:
            entry = self.resolve_doi(doi)
            if entry is not None:
                return entry
        return super()._lookup(record)

    def resolve(self, query: str) -> Optional[Entry]:
        params = {"query.bibliographic": query, "rows": 1}
        return self._request(f"{API_URL}?{self._encode(params)}", scored=True)

    def resolve_doi(self, doi: str) -> Optional[Entry]:
        url = f"{API_URL}/{urllib.parse.quote(normalize_doi(doi), safe='/')}"
        params = self._encode({})
        return self._request(f"{url}?{params}" if params else url, scored=False)

    def _encode(self, params: Dict[str, object]) -> str:
        if self.mode == "free" and self.email:
            params = dict(params, mailto=self.email)
        return urllib.parse.urlencode(params)

    def _request(self, url: str, scored: bool) -> Optional[Entry]:
        payload = self._fetch(url)
        if not payload:
            return None
        message = self._parse_response(payload)
        if message is None:
            return None
        if scored:
            score = message.get("score")
            if isinstance(score, (int, float)) and score < self.min_score:
                logger.debug("Crossref best match scored %.1f, below %.1f", score, self.min_score)
                return None
        return self.to_entry(message)

    @staticmethod
    def _parse_response(payload: str) -> Optional[Dict[str, object]]:
        try:
            data = json.loads(payload)
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        message = data.get("message")
        if isinstance(message, dict) and "items" in message:
            items = message.get("items")
            message = items[0] if isinstance(items, list) and items else None
        if not isinstance(message, dict) or not message.get("DOI"):
            return None
        return message

    @staticmethod
    def to_entry(message: Dict[str, object]) -> Entry:
        """Convert a Crossref work record into a BibTeX entry."""

        def first_value(value):
            if isinstance(value, list) and value:
                value = value[0]
            if isinstance(value, (str, int)) and not isinstance(value, bool):
                return str(value)
            return None

        entry_type = _TYPE_MAP.get(str(message.get("type", "")), "misc")
        fields: Dict[str, str] = {}

        title = first_value(message.get("title"))
        if title:
            fields["title"] = title
        container = first_value(message.get("container-title"))
        if container:
            fields["journal" if entry_type == "article" else "booktitle"] = container

        for key in ("published-print", "issued", "published-online"):
            year = _issued_year(message.get(key))
            if year:
                fields["year"] = year
                break

        for source, target in (("volume", "volume"), ("issue", "number"), ("publisher", "publisher")):
            value = first_value(message.get(source))
            if value:
                fields[target] = value
        pages = first_value(message.get("page"))
        if pages:
            fields["pages"] = pages.replace("-", "--")
        issn = first_value(message.get("ISSN"))
        if issn:
            fields["issn"] = issn
        fields["doi"] = str(message["DOI"])

        authors: List[Person] = []
        raw_authors = message.get("author")
        for author in raw_authors if isinstance(raw_authors, list) else []:
            if not isinstance(author, dict):
                continue
            family = first_value(author.get("family"))
            given = first_value(author.get("given"))
            name = first_value(author.get("name"))
            try:
                if family and given:
                    authors.append(Person(f"{family}, {given}"))
                elif family:
                    authors.append(Person(family))
                elif name:
                    authors.append(Person("{%s}" % name))
            except PybtexError:
                continue
        persons = {"author": authors} if authors else {}
        return Entry(entry_type, fields=fields, persons=persons)


__all__ = ["CrossrefResolver", "normalize_doi"]
