"""Serializers for reconstructed citations."""
from __future__ import annotations

from typing import Iterable, List

from pybtex.database import BibliographyData, Entry

from .models import CitationRecord
from .normalization import escape_xml

COMMENT_PREFIX = "% "
MR_NUMBER_WIDTH = 7


def pad_mr_number(value: str) -> str:
    """Left-pad an MR number with zeros to seven digits."""
    value = value.strip()
    if len(value) >= MR_NUMBER_WIDTH:
        return value
    return value.rjust(MR_NUMBER_WIDTH, "0")


def apply_mr_padding(entry: Entry) -> Entry:
    if "mrnumber" in entry.fields:
        entry.fields["mrnumber"] = pad_mr_number(str(entry.fields["mrnumber"]))
    return entry


def entry_to_bibtex(key: str, entry: Entry) -> str:
    """Serialize an entry under the local citation key."""
    apply_mr_padding(entry)
    return BibliographyData(entries={key: entry}).to_string("bibtex")


def comment_block(lines: Iterable[str]) -> str:
    return "".join(f"{COMMENT_PREFIX}{line}\n" for line in lines)


def to_bibliography_entry(record: CitationRecord) -> str:
    """Audit comment with the source text, then the resolved entry if any."""
    text = comment_block(record.raw_text)
    if record.resolved_record is not None:
        text += entry_to_bibtex(record.key, record.resolved_record).rstrip("\n") + "\n"
    return text + "\n"


def to_bibtex(records: Iterable[CitationRecord]) -> str:
    return "".join(to_bibliography_entry(record) for record in records)


def to_citation_xml_fragment(
    record: CitationRecord, preescaped: bool = False, indent: int = 0
) -> str:
    pad = " " * indent
    key = escape_xml(record.key, quote=True)
    text = escape_xml(record.normalized_text, preescaped)
    lines: List[str] = [
        f'{pad}<citation key="{key}">',
        f"{pad}  <unstructured_citation>{text}</unstructured_citation>",
        f"{pad}</citation>",
    ]
    return "\n".join(lines) + "\n"
