import json

from crossrefware.models import CitationRecord
from crossrefware.resolvers import (
    ArxivResolver,
    MathSciNetResolver,
    ZbMathResolver,
    parse_first_entry,
)

MREF_REPLY = """<html><body>
<pre>@article {MR123,
    AUTHOR = {Doe, Jane},
     TITLE = {A title with \\&amp; ampersand},
   JOURNAL = {J. Math.},
      YEAR = {2020},
  MRNUMBER = {123},
}</pre>
</body></html>"""

ARXIV_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:arxiv="http://arxiv.org/schemas/atom">
  <title>ArXiv Query</title>
  <entry>
    <id>http://arxiv.org/abs/2001.01234v2</id>
    <published>2020-01-03T18:00:00Z</published>
    <title>A   study of
      things</title>
    <author><name>Jane Doe</name></author>
    <author><name>Richard Roe</name></author>
    <arxiv:doi>10.1000/xyz</arxiv:doi>
    <arxiv:journal_ref>J. Math. 1 (2020) 1-10</arxiv:journal_ref>
    <arxiv:primary_category term="math.CO" scheme="http://arxiv.org/schemas/atom"/>
  </entry>
</feed>"""

ARXIV_ERROR_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <entry>
    <id>http://arxiv.org/api/errors#incorrect_id_format_for_foo</id>
    <title>Error</title>
  </entry>
</feed>"""


class RecordingFetcher:
    def __init__(self, replies):
        self.replies = replies
        self.urls = []

    def __call__(self, url, timeout):
        self.urls.append(url)
        for marker, reply in self.replies.items():
            if marker in url:
                return reply
        return ""


def test_parse_first_entry_handles_garbage():
    assert parse_first_entry("no bibtex here") is None
    assert parse_first_entry("@article{a, title = {T}}").fields["title"] == "T"


def test_mathscinet_parses_pre_block_and_pads_mr_number():
    fetcher = RecordingFetcher({"mathscinet-mref": MREF_REPLY})

    entry = MathSciNetResolver(fetcher=fetcher).resolve("J. Doe, A title, 2020")

    assert entry is not None
    assert entry.type == "article"
    assert entry.fields["mrnumber"] == "0000123"
    assert entry.fields["journal"] == "J. Math."
    assert "dataType=bibtex" in fetcher.urls[0]
    assert "ref=J.+Doe" in fetcher.urls[0]


def test_mathscinet_without_match_returns_none():
    resolver = MathSciNetResolver(fetcher=lambda _url, _timeout: "<html>No match</html>")

    assert resolver.resolve("anything") is None


def test_mathscinet_network_failure_returns_none():
    def broken(_url, _timeout):
        raise RuntimeError("network down")

    assert MathSciNetResolver(fetcher=broken).resolve("anything") is None


def test_zbmath_matches_then_fetches_bibtex():
    fetcher = RecordingFetcher(
        {
            "citationmatching": json.dumps({"results": [{"zbl_id": "1234.56789", "score": 9}]}),
            "bibtex/1234.56789.bib": "@article{zbMATH01, author = {Doe, Jane}, "
            "title = {A title}, year = {2020}}",
        }
    )

    entry = ZbMathResolver(fetcher=fetcher).resolve("J. Doe, A title")

    assert entry is not None
    assert entry.fields["zbl"] == "1234.56789"
    assert len(fetcher.urls) == 2
    assert "format=json" in fetcher.urls[0]


def test_zbmath_without_results_skips_second_request():
    fetcher = RecordingFetcher({"citationmatching": json.dumps({"results": []})})

    assert ZbMathResolver(fetcher=fetcher).resolve("J. Doe") is None
    assert len(fetcher.urls) == 1


def test_arxiv_feed_becomes_misc_entry():
    fetcher = RecordingFetcher({"export.arxiv.org": ARXIV_FEED})

    entry = ArxivResolver(fetcher=fetcher).resolve("Jane Doe. A study of things")

    assert entry.type == "misc"
    assert entry.fields["title"] == "A study of things"
    assert entry.fields["eprint"] == "2001.01234"
    assert entry.fields["archiveprefix"] == "arXiv"
    assert entry.fields["primaryclass"] == "math.CO"
    assert entry.fields["doi"] == "10.1000/xyz"
    assert entry.fields["year"] == "2020"
    assert [str(person) for person in entry.persons["author"]] == ["Doe, Jane", "Roe, Richard"]
    assert "search_query=all%3AJane+AND+all%3ADoe" in fetcher.urls[0]


def test_arxiv_annotation_uses_id_lookup():
    fetcher = RecordingFetcher({"export.arxiv.org": ARXIV_FEED})
    record = CitationRecord(
        key="x",
        raw_text=("x",),
        normalized_text="Jane Doe. A study",
        extracted_fields={"arxiv": "arXiv:2001.01234"},
    )

    entry = ArxivResolver(fetcher=fetcher).lookup(record)

    assert entry.fields["eprint"] == "2001.01234"
    assert "id_list=2001.01234" in fetcher.urls[0]


def test_arxiv_error_feed_returns_none():
    resolver = ArxivResolver(fetcher=lambda _url, _timeout: ARXIV_ERROR_FEED)

    assert resolver.resolve_id("foo") is None


def test_empty_query_is_not_sent():
    fetcher = RecordingFetcher({})
    record = CitationRecord(key="x", raw_text=("x",), normalized_text="")

    assert MathSciNetResolver(fetcher=fetcher).lookup(record) is None
    assert fetcher.urls == []
