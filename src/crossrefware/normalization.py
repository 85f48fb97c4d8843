"""Conversion of LaTeX-laden bibliography text into plain text and XML."""
from __future__ import annotations

import re
import unicodedata
from typing import Callable, List, Tuple, Union
from xml.sax.saxutils import escape

from .errors import MarkupError

Replacement = Union[str, Callable[["re.Match[str]"], str]]

ACCENTS = {
    "`": "\u0300",
    "'": "\u0301",
    "^": "\u0302",
    "~": "\u0303",
    "=": "\u0304",
    "u": "\u0306",
    ".": "\u0307",
    '"': "\u0308",
    "r": "\u030a",
    "H": "\u030b",
    "v": "\u030c",
    "d": "\u0323",
    "c": "\u0327",
    "k": "\u0328",
    "b": "\u0331",
}

SPECIAL_LETTERS = {
    "ss": "\u00df",
    "ae": "\u00e6",
    "AE": "\u00c6",
    "oe": "\u0153",
    "OE": "\u0152",
    "aa": "\u00e5",
    "AA": "\u00c5",
    "o": "\u00f8",
    "O": "\u00d8",
    "l": "\u0142",
    "L": "\u0141",
    "i": "\u0131",
    "j": "\u0237",
}

SPECIAL_SYMBOLS = {
    "&": "&",
    "%": "%",
    "_": "_",
    "#": "#",
}

# Directives dropped without touching their argument.
DROPPED_DIRECTIVES = (
    "newblock",
    "bgroup",
    "egroup",
    "scshape",
    "itshape",
    "bfseries",
    "upshape",
    "mdseries",
    "normalfont",
    "urlprefix",
    "emph",
    "textbf",
    "textit",
    "textsc",
    "textrm",
    "textsf",
    "texttt",
    "textup",
    "textnormal",
    "textsl",
    "enquote",
    "mbox",
    "hbox",
    "ensuremath",
    "mathrm",
    "mathit",
    "mathbf",
    "mathsf",
    "mathcal",
    "operatorname",
    "natexlab",
    "relax",
    "selectfont",
    "em",
    "bf",
    "it",
    "sc",
    "rm",
    "sl",
    "sf",
    "tt",
)

# Crossref face markup permitted inside titles.
ALLOWED_TITLE_TAGS = frozenset({"b", "i", "u", "ovl", "sup", "sub", "scp", "tt", "font"})

TITLE_MARKUP = (
    ("emph", "i"),
    ("textit", "i"),
    ("textbf", "b"),
    ("textsuperscript", "sup"),
    ("textsubscript", "sub"),
    ("underline", "u"),
    ("textsc", "scp"),
    ("texttt", "tt"),
)

_TAG = re.compile(r"<(/?)([A-Za-z][\w:.-]*)([^<>]*)>")
_ENTITY = re.compile(r"&(?!#\d+;|#x[0-9A-Fa-f]+;|[A-Za-z][A-Za-z0-9]*;)")


def _compose(base: str, mark: str) -> str:
    if base in ("\\i", "\\j"):
        base = base[1]
    return unicodedata.normalize("NFC", base + mark)


def _accent(match: "re.Match[str]") -> str:
    letter = match.group(2) or match.group(3)
    return _compose(letter, ACCENTS[match.group(1)])


def _special_letter(match: "re.Match[str]") -> str:
    return SPECIAL_LETTERS[match.group(1)]


def _special_symbol(match: "re.Match[str]") -> str:
    return SPECIAL_SYMBOLS[match.group(1)]


def _rule(pattern: str, replacement: Replacement, flags: int = 0) -> Tuple["re.Pattern[str]", Replacement]:
    return re.compile(pattern, flags), replacement


_WORD_END = r"(?![A-Za-z])"

RULES: List[Tuple["re.Pattern[str]", Replacement]] = [
    # line breaks, with an optional skip argument
    _rule(r"\\\\(?:\[[^\]]*\])?", " "),
    _rule(r"\\(?:%s)%s\s*" % ("|".join(DROPPED_DIRECTIVES), _WORD_END), ""),
    _rule(r"\\url" + _WORD_END, "URL: "),
    _rule(r"\\doi" + _WORD_END, "DOI: "),
    _rule(r"\\checkcomma" + _WORD_END, ","),
    _rule(r"\\-", ""),
    # \'e, \'{e}, {\'e}, \'\i
    _rule(
        r"\\([`'^\"~=.])\s*(?:\{\s*(\\[ij]|[A-Za-z])\s*\}|(\\[ij](?![A-Za-z])|[A-Za-z]))",
        _accent,
    ),
    # \c{c}, \c c, \v{s}, \H o
    _rule(
        r"\\([uvHckrbd])(?:\s*\{\s*(\\[ij]|[A-Za-z])\s*\}|\s+(\\[ij](?![A-Za-z])|[A-Za-z]))",
        _accent,
    ),
    _rule(r"\\(ss|ae|AE|oe|OE|aa|AA|o|O|l|L|i|j)%s(?:\{\})?\s*" % _WORD_END, _special_letter),
    _rule(r"\\textendash" + _WORD_END, "\u2013"),
    _rule(r"\\textemdash" + _WORD_END, "\u2014"),
    _rule(r"\\(?:ldots|dots|textellipsis)%s(?:\{\})?" % _WORD_END, "\u2026"),
    _rule(r"---", "\u2014"),
    _rule(r"--", "\u2013"),
    # math delimiters; escaped dollars and braces are dropped like bare ones
    _rule(r"\\?\$", ""),
    _rule(r"\\[{}]", ""),
    _rule(r"\\([&%_#])", _special_symbol),
    # anything else that looks like a control sequence
    _rule(r"\\[A-Za-z]+\*?", " "),
    _rule(r"\\.", " "),
    _rule(r"~", " "),
    _rule(r"[{}]", ""),
    _rule(r"\s+", " "),
    _rule(r" ([.,;])", r"\1"),
]


def normalize(text: str | None) -> str:
    """Return plain text for display and database queries.

    Unknown control sequences become a space rather than an error; the raw
    citation is always kept separately for the audit comment.
    """
    if not text:
        return ""
    result = text
    for pattern, replacement in RULES:
        result = pattern.sub(replacement, result)
    return result.strip()


def escape_xml(text: str, preescaped: bool = False, quote: bool = False) -> str:
    """Escape text for XML; pre-escaped input only gets its bare ampersands fixed."""
    if preescaped:
        return _ENTITY.sub("&amp;", text)
    if quote:
        return escape(text, {'"': "&quot;"})
    return escape(text)


def _replace_command(text: str, command: str, tag: str) -> str:
    """Replace ``\\command{arg}`` with ``<tag>arg</tag>``, honouring nested braces."""
    pattern = re.compile(r"\\%s%s\s*\{" % (re.escape(command), _WORD_END))
    while True:
        match = pattern.search(text)
        if not match:
            return text
        depth = 1
        pos = match.end()
        while pos < len(text) and depth:
            char = text[pos]
            if char == "\\":
                pos += 2
                continue
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
            pos += 1
        if depth:
            # unbalanced: leave the rest to the normalizer
            return text[: match.start()] + text[match.end():]
        inner = text[match.end(): pos - 1]
        text = f"{text[: match.start()]}<{tag}>{inner}</{tag}>{text[pos:]}"


def title_markup(text: str) -> str:
    """Turn LaTeX font commands into Crossref face markup."""
    for command, tag in TITLE_MARKUP:
        text = _replace_command(text, command, tag)
    return text


def sanitize_title(text: str, preescaped: bool = False, source: str | None = None) -> str:
    """Normalize a title, keep allowed face markup and escape everything else.

    Allow-listed tags stay in the output as markup, so ``<b>Foo</b> & Bar``
    becomes ``<b>Foo</b> &amp; Bar``; any other tag raises ``MarkupError``.
    """
    plain = normalize(title_markup(text))
    pieces: List[str] = []
    last = 0
    for match in _TAG.finditer(plain):
        name = match.group(2).lower()
        if name not in ALLOWED_TITLE_TAGS:
            where = f" in {source}" if source else ""
            raise MarkupError(f"Disallowed markup <{match.group(2)}> in title{where}: {plain}")
        pieces.append(escape_xml(plain[last: match.start()], preescaped))
        pieces.append(f"<{match.group(1)}{name}{match.group(3)}>")
        last = match.end()
    pieces.append(escape_xml(plain[last:], preescaped))
    return "".join(pieces)


__all__ = [
    "ALLOWED_TITLE_TAGS",
    "RULES",
    "escape_xml",
    "normalize",
    "sanitize_title",
    "title_markup",
]
