from pathlib import Path

import pytest
from pybtex.database import Entry, parse_file

from crossrefware import cli
from crossrefware.resolution import ResolutionOrchestrator

BBL = "\n".join(
    [
        r"\begin{thebibliography}{2}",
        r"\bibitem{doe} J.~Doe, \emph{A title}, J. Math. (2020). \mr{123}",
        r"\bibitem{roe} R.~Roe, Unknown paper.",
        r"\end{thebibliography}",
    ]
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("EMAIL", "USERNAME", "PASSWORD", "MODE", "SEARCH_ORDER"):
        monkeypatch.delenv(f"CROSSREFWARE_{name}", raising=False)


def test_bbl2bib_writes_comments_and_entries(monkeypatch, tmp_path: Path, make_resolver):
    calls = []

    def answer():
        calls.append("mathscinet")
        if len(calls) == 1:
            return Entry("article", fields={"title": "A title", "year": "2020"})
        return None

    class FakeOrchestrator(ResolutionOrchestrator):
        @classmethod
        def from_settings(cls, settings, order=None, fetcher=None):
            return ResolutionOrchestrator({"mathscinet": make_resolver("mathscinet", answer)}, order)

    monkeypatch.setattr(cli, "ResolutionOrchestrator", FakeOrchestrator)
    source = tmp_path / "paper.bbl"
    source.write_text(BBL)
    output = tmp_path / "paper.bib"

    exit_code = cli.bbl2bib_main(["-s", "m", "-o", str(output), str(source)])

    assert exit_code == 0
    text = output.read_text()
    assert text.startswith(r"% \bibitem{doe} J.~Doe")
    assert r"% \bibitem{roe} R.~Roe, Unknown paper." in text
    entries = parse_file(str(output), "bibtex").entries
    assert list(entries) == ["doe"]
    assert entries["doe"].fields["mrnumber"] == "0000123"
    assert calls == ["mathscinet", "mathscinet"]


def test_bbl2bib_writes_to_stdout_by_default(monkeypatch, tmp_path: Path, make_resolver, capsys):
    class FakeOrchestrator(ResolutionOrchestrator):
        @classmethod
        def from_settings(cls, settings, order=None, fetcher=None):
            return ResolutionOrchestrator({"zbmath": make_resolver("zbmath", None)}, order)

    monkeypatch.setattr(cli, "ResolutionOrchestrator", FakeOrchestrator)
    source = tmp_path / "paper.bbl"
    source.write_text(BBL)

    assert cli.bbl2bib_main(["-s", "z", str(source)]) == 0
    assert "% \\bibitem{roe}" in capsys.readouterr().out


def test_bbl2bib_crossref_without_email_fails(tmp_path: Path, capsys):
    source = tmp_path / "paper.bbl"
    source.write_text(BBL)

    exit_code = cli.bbl2bib_main(["-s", "d", str(source)])

    assert exit_code == 1
    assert "bbl2bib: Crossref requires a registered e-mail" in capsys.readouterr().err


def test_bbl2bib_missing_input_fails(tmp_path: Path, capsys):
    exit_code = cli.bbl2bib_main(["-s", "m", str(tmp_path / "missing.bbl")])

    assert exit_code == 1
    assert "Cannot find" in capsys.readouterr().err


def test_bbl2bib_can_require_a_bibliography(tmp_path: Path, capsys):
    source = tmp_path / "notes.tex"
    source.write_text("No bibliography here.\n")

    exit_code = cli.bbl2bib_main(
        ["-s", "m", "--require-bibliography", "-o", str(tmp_path / "out.bib"), str(source)]
    )

    assert exit_code == 1
    assert "No thebibliography environment" in capsys.readouterr().err


def test_bbl2bib_rejects_input_that_is_not_utf8(monkeypatch, tmp_path: Path, make_resolver, capsys):
    class FakeOrchestrator(ResolutionOrchestrator):
        @classmethod
        def from_settings(cls, settings, order=None, fetcher=None):
            return ResolutionOrchestrator({"mathscinet": make_resolver("mathscinet", None)}, order)

    monkeypatch.setattr(cli, "ResolutionOrchestrator", FakeOrchestrator)
    source = tmp_path / "latin1.bbl"
    source.write_bytes(b"\\begin{thebibliography}{1}\n\\bibitem{a} G\xf6del.\n\\end{thebibliography}\n")

    exit_code = cli.bbl2bib_main(["-s", "m", "-o", str(tmp_path / "out.bib"), str(source)])

    assert exit_code == 1
    assert "bbl2bib: Cannot read Bbl or TeX file" in capsys.readouterr().err


def test_bbl2bib_closes_resolvers_when_done(monkeypatch, tmp_path: Path, make_resolver):
    closed = []

    class FakeOrchestrator(ResolutionOrchestrator):
        @classmethod
        def from_settings(cls, settings, order=None, fetcher=None):
            return cls({"mathscinet": make_resolver("mathscinet", None)}, order)

        def close(self):
            closed.append(True)

    monkeypatch.setattr(cli, "ResolutionOrchestrator", FakeOrchestrator)
    source = tmp_path / "paper.bbl"
    source.write_text(BBL)

    assert cli.bbl2bib_main(["-s", "m", "-o", str(tmp_path / "out.bib"), str(source)]) == 0
    assert closed == [True]


def test_ltx2crossrefxml_end_to_end(tmp_path: Path):
    tex = tmp_path / "paper.tex"
    tex.write_text(BBL + "\n")
    (tmp_path / "paper.rpi").write_text(
        "\n".join(
            [
                r"%authors=Jane Doe \and Richard Roe",
                "%title=A title",
                "%year=2020",
                "%volume=1",
                "%issue=2",
                "%startpage=1",
                "%endpage=9",
                "%doi=10.5555/jm.1",
            ]
        )
    )
    config = tmp_path / "deposit.env"
    config.write_text(
        "RESOURCE_URL_TEMPLATE=https://j.example/{doi}\n"
        "BATCH_ID=batch-7\n"
        "TIMESTAMP=20240101000000\n"
    )
    output = tmp_path / "deposit.xml"

    exit_code = cli.ltx2crossrefxml_main(["-c", str(config), "-o", str(output), str(tex)])

    assert exit_code == 0
    xml = output.read_text()
    assert "<doi_batch_id>batch-7</doi_batch_id>" in xml
    assert "<resource>https://j.example/10.5555/jm.1</resource>" in xml
    assert '<citation key="doe">' in xml
    assert xml.rstrip().endswith("</doi_batch>")


def test_ltx2crossrefxml_missing_side_file_writes_nothing(tmp_path: Path, capsys):
    tex = tmp_path / "paper.tex"
    tex.write_text("text")
    output = tmp_path / "deposit.xml"

    exit_code = cli.ltx2crossrefxml_main(["-o", str(output), str(tex)])

    assert exit_code == 1
    assert "Did you process" in capsys.readouterr().err
    assert not output.exists()


def test_ltx2crossrefxml_without_resource_url_writes_nothing(tmp_path: Path, capsys):
    tex = tmp_path / "paper.tex"
    tex.write_text("text")
    (tmp_path / "paper.rpi").write_text("%title=A title\n%doi=10.5555/jm.1\n")
    output = tmp_path / "deposit.xml"

    exit_code = cli.ltx2crossrefxml_main(["-o", str(output), str(tex)])

    assert exit_code == 1
    assert "no resource_url_template configured" in capsys.readouterr().err
    assert not output.exists()


def test_ltx2crossrefxml_rejects_side_file_that_is_not_utf8(tmp_path: Path, capsys):
    tex = tmp_path / "paper.tex"
    tex.write_text("text")
    (tmp_path / "paper.rpi").write_bytes(b"%authors=Kurt G\xf6del\n")
    output = tmp_path / "deposit.xml"

    exit_code = cli.ltx2crossrefxml_main(["-o", str(output), str(tex)])

    assert exit_code == 1
    assert "Cannot read metadata file" in capsys.readouterr().err
    assert not output.exists()


def test_bibdoiadd_fills_missing_doi(monkeypatch, tmp_path: Path, make_resolver):
    monkeypatch.setenv("CROSSREFWARE_EMAIL", "editor@example.org")
    resolver = make_resolver("crossref", lambda: Entry("article", fields={"doi": "10.1/new"}))
    monkeypatch.setattr(cli, "build_resolver", lambda source, settings: resolver)
    source = tmp_path / "refs.bib"
    source.write_text(
        "@article{doe, author = {Doe, Jane}, title = {A title}, year = {2020}}\n"
        "@article{roe, title = {Other}, doi = {10.1/kept}}\n"
    )
    output = tmp_path / "out.bib"

    exit_code = cli.main(["bibdoiadd", "-o", str(output), str(source)])

    assert exit_code == 0
    entries = parse_file(str(output), "bibtex").entries
    assert entries["doe"].fields["doi"] == "10.1/new"
    assert entries["roe"].fields["doi"] == "10.1/kept"
    assert resolver.queries == ["Doe, Jane. A title. 2020"]


def test_bibdoiadd_closes_its_resolver(monkeypatch, tmp_path: Path, make_resolver):
    monkeypatch.setenv("CROSSREFWARE_EMAIL", "editor@example.org")
    closed = []
    resolver = make_resolver("crossref", None)
    monkeypatch.setattr(resolver, "close", lambda: closed.append(True))
    monkeypatch.setattr(cli, "build_resolver", lambda source, settings: resolver)
    source = tmp_path / "refs.bib"
    source.write_text("@article{doe, title = {A title}, year = {2020}}\n")

    assert cli.main(["bibdoiadd", "-o", str(tmp_path / "out.bib"), str(source)]) == 0
    assert closed == [True]


def test_bibmradd_reports_unparsable_input(tmp_path: Path, capsys):
    source = tmp_path / "broken.bib"
    source.write_text("@article{broken, title = {unterminated\n")

    exit_code = cli.bibmradd_main([str(source)])

    assert exit_code == 1
    assert "bibmradd: Cannot parse" in capsys.readouterr().err


def test_main_requires_a_tool_name(capsys):
    assert cli.main([]) == 2
    assert "usage: crossrefware" in capsys.readouterr().err
