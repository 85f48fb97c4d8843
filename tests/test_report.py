from pybtex.database import Entry

from crossrefware.models import CitationRecord
from crossrefware.report import render_summary


def test_summary_counts_sources_and_lists_missing():
    records = [
        CitationRecord(key="a", raw_text=("a",), resolved_record=Entry("misc"), resolved_by="zbmath"),
        CitationRecord(key="b", raw_text=("b",), resolved_record=Entry("misc"), resolved_by="crossref"),
        CitationRecord(key="c", raw_text=("c",), resolved_record=Entry("misc"), resolved_by="crossref"),
        CitationRecord(key="d", raw_text=("d",)),
    ]

    summary = render_summary(records, "paper.bbl")

    assert summary.splitlines() == [
        "Citation resolution summary for paper.bbl",
        "Citations processed: 4",
        "Citations resolved: 3",
        "  crossref: 2",
        "  zbmath: 1",
        "Not found: d",
    ]
