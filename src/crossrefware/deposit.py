"""Crossref deposit XML for a batch of journal articles."""
from __future__ import annotations

from typing import Iterable, Iterator, List, TextIO

from .config import Settings
from .errors import ConfigurationError, InputError
from .exporters import to_citation_xml_fragment
from .metadata import IssueKey, group_papers, iter_issues
from .models import AuthorSpec, PaperMetadata
from .normalization import escape_xml, sanitize_title

SCHEMA_VERSION = "4.4.2"
SCHEMA_NAMESPACE = f"http://www.crossref.org/schema/{SCHEMA_VERSION}"
SCHEMA_LOCATION = (
    f"{SCHEMA_NAMESPACE} https://www.crossref.org/schemas/crossref{SCHEMA_VERSION}.xsd"
)
ORCID_PREFIX = "https://orcid.org/"


def orcid_url(orcid: str) -> str:
    orcid = orcid.strip()
    if orcid.lower().startswith(("http://", "https://")):
        return orcid
    return ORCID_PREFIX + orcid


class DepositWriter:
    """Render papers as a ``doi_batch`` document, one chunk at a time."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def _text(self, value: str | None) -> str:
        return escape_xml(value or "", self.settings.preescaped)

    def write(self, stream: TextIO, papers: Iterable[PaperMetadata]) -> None:
        """Write the deposit; a fatal error leaves what was already written."""
        for chunk in self.iter_chunks(papers):
            stream.write(chunk)

    def render(self, papers: Iterable[PaperMetadata]) -> str:
        return "".join(self.iter_chunks(papers))

    def validate(self, papers: Iterable[PaperMetadata]) -> None:
        """Fail before any output if some paper has no resource URL."""
        for paper in papers:
            self.resource_url(paper)

    def iter_chunks(self, papers: Iterable[PaperMetadata]) -> Iterator[str]:
        papers = list(papers)
        self.validate(papers)
        yield self.head()
        for key, issue_papers in iter_issues(group_papers(papers)):
            yield self.issue_head(key)
            for paper in issue_papers:
                yield self.article(paper)
        yield self.tail()

    def head(self) -> str:
        s = self.settings
        return (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            f'<doi_batch xmlns="{SCHEMA_NAMESPACE}" '
            'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" '
            f'version="{SCHEMA_VERSION}" xsi:schemaLocation="{SCHEMA_LOCATION}">\n'
            "  <head>\n"
            f"    <doi_batch_id>{self._text(s.batch_id)}</doi_batch_id>\n"
            f"    <timestamp>{self._text(s.timestamp)}</timestamp>\n"
            "    <depositor>\n"
            f"      <depositor_name>{self._text(s.depositor_name)}</depositor_name>\n"
            f"      <email_address>{self._text(s.depositor_email)}</email_address>\n"
            "    </depositor>\n"
            f"    <registrant>{self._text(s.registrant)}</registrant>\n"
            "  </head>\n"
            "  <body>\n"
            "    <journal>\n"
            '      <journal_metadata language="en">\n'
            f"        <full_title>{self._text(s.full_title)}</full_title>\n"
            f"        <abbrev_title>{self._text(s.abbrev_title)}</abbrev_title>\n"
            f"        <issn>{self._text(s.issn)}</issn>\n"
            f"        <coden>{self._text(s.coden)}</coden>\n"
            "      </journal_metadata>\n"
        )

    @staticmethod
    def tail() -> str:
        return "    </journal>\n  </body>\n</doi_batch>\n"

    def issue_head(self, key: IssueKey) -> str:
        year, volume, issue = (self._text(part) for part in key)
        return (
            "      <journal_issue>\n"
            '        <publication_date media_type="print">\n'
            f"          <year>{year}</year>\n"
            "        </publication_date>\n"
            "        <journal_volume>\n"
            f"          <volume>{volume}</volume>\n"
            "        </journal_volume>\n"
            f"        <issue>{issue}</issue>\n"
            "      </journal_issue>\n"
        )

    def resource_url(self, paper: PaperMetadata) -> str:
        if paper.paper_url:
            return paper.paper_url
        template = self.settings.resource_url_template
        if template:
            try:
                return template.format(doi=paper.doi)
            except (KeyError, IndexError, ValueError) as exc:
                raise ConfigurationError(
                    f"Bad resource_url_template {template!r}: only {{doi}} may be substituted"
                ) from exc
        raise InputError(
            f"No paperUrl in {paper.source or 'paper metadata'} and no resource_url_template configured"
        )

    def article(self, paper: PaperMetadata) -> str:
        title = sanitize_title(paper.title, self.settings.preescaped, source=paper.source)
        lines: List[str] = [
            '      <journal_article publication_type="full_text">',
            "        <titles>",
            f"          <title>{title}</title>",
            "        </titles>",
        ]
        if paper.authors:
            lines.append("        <contributors>")
            for index, author in enumerate(paper.authors):
                lines.extend(self.contributor(author, "first" if index == 0 else "additional"))
            lines.append("        </contributors>")
        lines.extend(
            [
                '        <publication_date media_type="print">',
                f"          <year>{self._text(paper.year)}</year>",
                "        </publication_date>",
                "        <pages>",
                f"          <first_page>{self._text(paper.start_page)}</first_page>",
            ]
        )
        if paper.end_page:
            lines.append(f"          <last_page>{self._text(paper.end_page)}</last_page>")
        lines.extend(
            [
                "        </pages>",
                "        <doi_data>",
                f"          <doi>{self._text(paper.doi)}</doi>",
                f"          <timestamp>{self._text(self.settings.timestamp)}</timestamp>",
                f"          <resource>{escape_xml(self.resource_url(paper))}</resource>",
                "        </doi_data>",
            ]
        )
        text = "\n".join(lines) + "\n"
        if paper.bibliography:
            text += "        <citation_list>\n"
            for record in paper.bibliography:
                text += to_citation_xml_fragment(record, self.settings.preescaped, indent=10)
            text += "        </citation_list>\n"
        return text + "      </journal_article>\n"

    def contributor(self, author: AuthorSpec, sequence: str) -> List[str]:
        attributes = f'sequence="{sequence}" contributor_role="author"'
        if author.organization:
            return [f"          <organization {attributes}>{self._text(author.family)}</organization>"]
        lines = [f"          <person_name {attributes}>"]
        if author.given:
            lines.append(f"            <given_name>{self._text(author.given)}</given_name>")
        lines.append(f"            <surname>{self._text(author.surname)}</surname>")
        if author.suffix:
            lines.append(f"            <suffix>{self._text(author.suffix)}</suffix>")
        if author.orcid:
            lines.append(f"            <ORCID>{escape_xml(orcid_url(author.orcid))}</ORCID>")
        lines.append("          </person_name>")
        return lines
