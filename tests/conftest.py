import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

import pytest
from pybtex.database import Entry

from crossrefware.resolvers import Resolver


class StubResolver(Resolver):
    """Resolver that records its queries and answers from a factory."""

    def __init__(self, name, answer=None):
        super().__init__(fetcher=lambda _url, _timeout: "")
        self.name = name
        self.answer = answer
        self.queries = []

    def resolve(self, query):
        self.queries.append(query)
        if callable(self.answer):
            return self.answer()
        return self.answer


@pytest.fixture()
def make_resolver():
    """Build stub resolvers: ``make_resolver("mathscinet", lambda: Entry(...))``."""

    return StubResolver


@pytest.fixture()
def mr_entry():
    def build():
        return Entry(
            "article",
            fields={
                "title": "A title",
                "journal": "J. Math.",
                "year": "2020",
                "mrnumber": "123",
            },
        )

    return build


@pytest.fixture()
def sample_bbl() -> str:
    return "\n".join(
        [
            "% generated by bibtex",
            r"\bibitem{outside} ignored before the environment",
            r"\end{thebibliography}",
            r"\begin{thebibliography}{9}",
            "",
            r"\bibitem{empty}",
            "",
            r"\bibitem[Doe(2020)]{doe}",
            r"J.~Doe, \emph{A title}, J. Math. \textbf{1} (2020), 1--10.",
            r"\mr{1234567}",
            "",
            r"\bibitem{roe} R. Roe. Another paper.",
            r"\end{thebibliography}",
            r"\bibitem{late} ignored after the environment",
        ]
    )
