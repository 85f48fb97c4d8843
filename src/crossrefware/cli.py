"""Command line interfaces of the crossrefware tools."""
from __future__ import annotations

import argparse
import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, TextIO

from pybtex.database import parse_file
from pybtex.exceptions import PybtexError

from .app import BibliographyReconstructor
from .config import Settings
from .deposit import DepositWriter
from .enrichment import IdentifierAdder
from .errors import CrossrefwareError, InputError
from .metadata import load_paper
from .models import CROSSREF, MATHSCINET, ZBMATH, SearchOrder
from .report import render_summary
from .resolution import ResolutionOrchestrator, build_resolver

logger = logging.getLogger(__name__)


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s", stream=sys.stderr)


def _base_parser(prog: str, description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, description=description)
    parser.add_argument("-c", "--config", type=Path, help="Configuration file (KEY=value lines)")
    parser.add_argument(
        "-o",
        "--output",
        default="-",
        help="Output file; '-' (the default) writes to standard output",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Report progress (-v) or every lookup (-vv) on standard error",
    )
    return parser


def _check_inputs(paths: List[Path], what: str) -> None:
    for path in paths:
        if not path.is_file():
            raise InputError(f"Cannot find {what} {path}")


@contextmanager
def _open_output(target: str) -> Iterator[TextIO]:
    if target == "-":
        yield sys.stdout
        sys.stdout.flush()
        return
    try:
        handle = open(target, "w", encoding="utf-8")
    except OSError as exc:
        raise InputError(f"Cannot open file {target} for writing: {exc}") from exc
    with handle:
        yield handle


def _run(prog: str, body, argv: List[str] | None) -> int:
    try:
        return body(argv)
    except CrossrefwareError as exc:
        print(f"{prog}: {exc}", file=sys.stderr)
        return 1


def _bbl2bib(argv: List[str] | None) -> int:
    parser = _base_parser(
        "bbl2bib", "Reconstruct BibTeX entries from a thebibliography environment"
    )
    parser.add_argument(
        "-s",
        "--search-order",
        help="Databases to search: letters a (arXiv), m (MathSciNet), z (zbMATH), "
        "d (Crossref), or comma separated names; default from config or 'mzd'",
    )
    parser.add_argument(
        "--require-bibliography",
        action="store_true",
        help="Fail when an input has no thebibliography environment",
    )
    parser.add_argument("inputs", nargs="+", type=Path, help="TeX or Bbl files")
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    settings = Settings.load(args.config)
    order = SearchOrder.parse(args.search_order or settings.search_order)
    _check_inputs(args.inputs, "Bbl or TeX file")
    require = args.require_bibliography or settings.require_bibliography
    orchestrator = ResolutionOrchestrator.from_settings(settings, order)
    reconstructor = BibliographyReconstructor(orchestrator)

    try:
        with _open_output(args.output) as output:
            for path in args.inputs:
                records = reconstructor.process_file(path, output, require_bibliography=require)
                logger.info(render_summary(records, str(path)))
    finally:
        orchestrator.close()
    return 0


def _ltx2crossrefxml(argv: List[str] | None) -> int:
    parser = _base_parser(
        "ltx2crossrefxml", "Create a Crossref deposit XML from LaTeX papers and their .rpi files"
    )
    parser.add_argument(
        "--require-bibliography",
        action="store_true",
        help="Fail when neither a paper nor its .bbl has a thebibliography environment",
    )
    parser.add_argument("inputs", nargs="+", type=Path, help="LaTeX files")
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    settings = Settings.load(args.config)
    require = args.require_bibliography or settings.require_bibliography
    papers = [load_paper(path, require_bibliography=require) for path in args.inputs]

    writer = DepositWriter(settings)
    writer.validate(papers)
    with _open_output(args.output) as output:
        writer.write(output, papers)
    return 0


def _add_identifiers(source: str, prog: str, argv: List[str] | None) -> int:
    parser = _base_parser(prog, f"Add missing identifiers from {source} to BibTeX files")
    parser.add_argument("inputs", nargs="+", type=Path, help="BibTeX files")
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    settings = Settings.load(args.config)
    settings.check_credentials(SearchOrder((source,)))
    _check_inputs(args.inputs, "BibTeX file")

    databases = []
    for path in args.inputs:
        try:
            databases.append(parse_file(str(path), "bibtex"))
        except (PybtexError, UnicodeDecodeError) as exc:
            raise InputError(f"Cannot parse {path}: {exc}") from exc

    resolver = build_resolver(source, settings)
    adder = IdentifierAdder(resolver)
    try:
        with _open_output(args.output) as output:
            for path, data in zip(args.inputs, databases):
                result = adder.enrich(data)
                logger.info(
                    "%s: %d entries checked, %d %s fields added",
                    path,
                    result.checked,
                    result.added,
                    adder.field,
                )
                output.write(data.to_string("bibtex"))
    finally:
        resolver.close()
    return 0


def bbl2bib_main(argv: List[str] | None = None) -> int:
    return _run("bbl2bib", _bbl2bib, argv)


def ltx2crossrefxml_main(argv: List[str] | None = None) -> int:
    return _run("ltx2crossrefxml", _ltx2crossrefxml, argv)


def bibdoiadd_main(argv: List[str] | None = None) -> int:
    return _run("bibdoiadd", lambda a: _add_identifiers(CROSSREF, "bibdoiadd", a), argv)


def bibmradd_main(argv: List[str] | None = None) -> int:
    return _run("bibmradd", lambda a: _add_identifiers(MATHSCINET, "bibmradd", a), argv)


def bibzbladd_main(argv: List[str] | None = None) -> int:
    return _run("bibzbladd", lambda a: _add_identifiers(ZBMATH, "bibzbladd", a), argv)


TOOLS = {
    "bbl2bib": bbl2bib_main,
    "ltx2crossrefxml": ltx2crossrefxml_main,
    "bibdoiadd": bibdoiadd_main,
    "bibmradd": bibmradd_main,
    "bibzbladd": bibzbladd_main,
}


def main(argv: List[str] | None = None) -> int:
    """Dispatch ``python -m crossrefware <tool> ...`` to one of the tools."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args or args[0] not in TOOLS:
        print(f"usage: crossrefware {{{','.join(TOOLS)}}} ...", file=sys.stderr)
        return 2
    return TOOLS[args[0]](args[1:])


if __name__ == "__main__":  # pragma: no cover - manual invocation helper
    raise SystemExit(main())
