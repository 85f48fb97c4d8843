"""Resolution reporting utilities."""
from __future__ import annotations

from collections import Counter
from typing import List

from .models import CitationRecord


def render_summary(records: List[CitationRecord], source_name: str | None = None) -> str:
    """Return a short human-readable summary of a resolution run."""

    header = "Citation resolution summary"
    if source_name:
        header += f" for {source_name}"
    lines = [header, f"Citations processed: {len(records)}"]
    found = Counter(record.resolved_by for record in records if record.is_resolved)
    lines.append(f"Citations resolved: {sum(found.values())}")
    for source, count in sorted(found.items()):
        lines.append(f"  {source}: {count}")
    missing = [record.key for record in records if not record.is_resolved]
    if missing:
        lines.append(f"Not found: {', '.join(missing)}")
    return "\n".join(lines)
