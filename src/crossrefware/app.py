"""High-level orchestrator for reconstructing BibTeX from typeset bibliographies."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, TextIO

from .citation_extractor import CitationBlockExtractor, contains_bibliography
from .errors import InputError
from .exporters import to_bibliography_entry
from .field_extractor import FieldExtractor
from .models import CitationRecord
from .resolution import ResolutionOrchestrator

logger = logging.getLogger(__name__)


class BibliographyReconstructor:
    """Coordinates extraction, annotation parsing, lookup and output."""

    def __init__(
        self,
        orchestrator: ResolutionOrchestrator,
        extractor: Optional[CitationBlockExtractor] = None,
        field_extractor: Optional[FieldExtractor] = None,
    ):
        self.orchestrator = orchestrator
        self.extractor = extractor or CitationBlockExtractor()
        self.field_extractor = field_extractor or FieldExtractor()

    def prepare(self, lines: Iterable[str]) -> List[CitationRecord]:
        return [self.field_extractor.extract(record) for record in self.extractor.extract(lines)]

    def process_lines(
        self, lines: Iterable[str], output: Optional[TextIO] = None
    ) -> List[CitationRecord]:
        """Resolve citations one at a time, writing each block once it is done."""
        results: List[CitationRecord] = []
        for record in self.prepare(lines):
            logger.debug("%s: %s", record.key, record.normalized_text)
            resolved = self.orchestrator.resolve(record)
            if output is not None:
                output.write(to_bibliography_entry(resolved))
            results.append(resolved)
        return results

    def process_file(
        self,
        path: str | Path,
        output: Optional[TextIO] = None,
        require_bibliography: bool = False,
    ) -> List[CitationRecord]:
        input_path = Path(path)
        try:
            lines = input_path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as exc:
            raise InputError(f"Cannot read Bbl or TeX file {input_path}: {exc}") from exc
        if require_bibliography and not contains_bibliography(lines):
            raise InputError(f"No thebibliography environment found in {input_path}")
        return self.process_lines(lines, output)
