"""Parsing of author specifications from paper side-files."""
from __future__ import annotations

import re
from typing import List

from pybtex.database import Person
from pybtex.exceptions import PybtexError

from .errors import InputError
from .models import AuthorSpec
from .normalization import normalize

AUTHOR_SEPARATOR = re.compile(r"\s*\\and(?![A-Za-z])\s*")
ORCID_PATTERN = re.compile(r"\\orcid\s*\{([^}]*)\}")
ORGANIZATION_PATTERN = re.compile(r"\\organization(?![A-Za-z])(?:\s*\{([^}]*)\})?")


def split_authors(value: str) -> List[str]:
    return [part.strip() for part in AUTHOR_SEPARATOR.split(value or "") if part.strip()]


def _joined(parts: List[str]) -> str | None:
    text = normalize(" ".join(parts))
    return text or None


def parse_author(spec: str, source: str | None = None) -> AuthorSpec:
    """Parse one author.

    Names follow the BibTeX conventions: ``First von Last``,
    ``von Last, First`` or ``von Last, Jr, First``.  The comma forms are the
    reliable ones; without commas a lowercase run before the family name is
    taken as the von part.
    """
    text = spec.strip()
    orcid = None
    organization = False

    orcid_match = ORCID_PATTERN.search(text)
    if orcid_match:
        orcid = orcid_match.group(1).strip()
        text = (text[: orcid_match.start()] + text[orcid_match.end():]).strip()

    org_match = ORGANIZATION_PATTERN.search(text)
    if org_match:
        organization = True
        if org_match.group(1) is not None:
            text = org_match.group(1).strip()
        else:
            text = (text[: org_match.start()] + text[org_match.end():]).strip()

    where = f" in {source}" if source else ""
    if organization and orcid_match:
        raise InputError(f"Author {spec!r}{where} is marked both as organization and with an ORCID")

    if organization:
        return AuthorSpec(raw=spec, organization=True, family=normalize(text) or None)

    try:
        person = Person(text)
    except PybtexError as exc:
        raise InputError(f"Cannot parse author {spec!r}{where}: {exc}") from exc

    return AuthorSpec(
        raw=spec,
        orcid=orcid or None,
        given=_joined(person.first_names + person.middle_names),
        von=_joined(person.prelast_names),
        family=_joined(person.last_names),
        suffix=_joined(person.lineage_names),
    )


def parse_authors(value: str, source: str | None = None) -> List[AuthorSpec]:
    return [parse_author(part, source) for part in split_authors(value)]
