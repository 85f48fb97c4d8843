"""Paper metadata side-files and their grouping into journal issues."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Tuple

from .authors import parse_authors
from .citation_extractor import CitationBlockExtractor, contains_bibliography
from .errors import InputError
from .models import CitationRecord, PaperMetadata

logger = logging.getLogger(__name__)

SIDE_FILE_SUFFIX = ".rpi"
SIDE_FILE_LINE = re.compile(r"^%([^=\s]+)=\s*(.*?)\s*$")

# side-file field name -> PaperMetadata attribute
SIDE_FILE_FIELDS = {
    "authors": "authors",
    "title": "title",
    "year": "year",
    "volume": "volume",
    "issue": "issue",
    "startpage": "start_page",
    "endpage": "end_page",
    "doi": "doi",
    "paperurl": "paper_url",
}

IssueKey = Tuple[str, str, str]


def _read_lines(path: Path, what: str) -> List[str]:
    try:
        return path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        raise InputError(f"Cannot read {what} {path}: {exc}") from exc


def read_side_file(path: str | Path) -> Dict[str, str]:
    """Read ``%name=value`` lines; a repeated name keeps its last value."""
    side_file = Path(path)
    data: Dict[str, str] = {}
    for line in _read_lines(side_file, "metadata file"):
        match = SIDE_FILE_LINE.match(line)
        if not match:
            continue
        name = match.group(1).lower()
        if name in data:
            logger.warning("%s: duplicate field %s, using the last value", side_file, match.group(1))
        data[name] = match.group(2)
    return data


def side_file_for(tex_path: str | Path) -> Path:
    return Path(tex_path).with_suffix(SIDE_FILE_SUFFIX)


def read_bibliography(paths: Iterable[Path], require: bool = False) -> List[CitationRecord]:
    """Collect citations from every existing file; optionally insist on one listing."""
    extractor = CitationBlockExtractor()
    records: List[CitationRecord] = []
    found = False
    checked: List[str] = []
    for path in paths:
        checked.append(str(path))
        if not path.is_file():
            continue
        lines = _read_lines(path, "Bbl or TeX file")
        if contains_bibliography(lines):
            found = True
            records.extend(extractor.extract(lines))
    if require and not found:
        raise InputError(f"No thebibliography environment found in {', '.join(checked)}")
    return records


def load_paper(tex_path: str | Path, require_bibliography: bool = False) -> PaperMetadata:
    tex = Path(tex_path)
    side_file = side_file_for(tex)
    if not side_file.is_file():
        raise InputError(f"Cannot find {side_file}.  Did you process {tex}?")
    data = read_side_file(side_file)

    paper = PaperMetadata(source=str(side_file))
    for name, attribute in SIDE_FILE_FIELDS.items():
        if name not in data:
            continue
        if attribute == "authors":
            paper.authors = parse_authors(data[name], source=str(side_file))
        elif attribute == "paper_url":
            paper.paper_url = data[name] or None
        else:
            setattr(paper, attribute, data[name])

    for name in ("title", "year", "volume", "issue", "doi"):
        if not data.get(name):
            logger.warning("%s: no %s given", side_file, name)

    paper.bibliography = read_bibliography(
        [tex, tex.with_suffix(".bbl")], require=require_bibliography
    )
    return paper


def group_papers(papers: Iterable[PaperMetadata]) -> Dict[IssueKey, List[PaperMetadata]]:
    """Group papers by (year, volume, issue), keeping input order inside a group."""
    grouped: Dict[IssueKey, List[PaperMetadata]] = {}
    for paper in papers:
        grouped.setdefault(paper.issue_key, []).append(paper)
    return grouped


def _natural(value: str) -> Tuple[int, int, str]:
    text = value.strip()
    if text.isdigit():
        return (0, int(text), text)
    return (1, 0, text)


def issue_sort_key(key: IssueKey) -> Tuple[Tuple[int, int, str], ...]:
    return tuple(_natural(part) for part in key)


def iter_issues(
    grouped: Dict[IssueKey, List[PaperMetadata]]
) -> Iterator[Tuple[IssueKey, List[PaperMetadata]]]:
    for key in sorted(grouped, key=issue_sort_key):
        yield key, grouped[key]
