"""Citation reconstruction, identifier lookup and Crossref deposit toolkit."""

from .app import BibliographyReconstructor
from .citation_extractor import CitationBlockExtractor, extract_citations
from .config import Settings
from .crossref import CrossrefResolver
from .deposit import DepositWriter
from .errors import ConfigurationError, CrossrefwareError, InputError, MarkupError
from .field_extractor import FieldExtractor
from .models import AuthorSpec, CitationRecord, PaperMetadata, SearchOrder
from .normalization import normalize
from .resolution import ResolutionOrchestrator
from .resolvers import ArxivResolver, MathSciNetResolver, Resolver, ZbMathResolver

__all__ = [
    "BibliographyReconstructor",
    "CitationBlockExtractor",
    "extract_citations",
    "Settings",
    "CrossrefResolver",
    "DepositWriter",
    "ConfigurationError",
    "CrossrefwareError",
    "InputError",
    "MarkupError",
    "FieldExtractor",
    "AuthorSpec",
    "CitationRecord",
    "PaperMetadata",
    "SearchOrder",
    "normalize",
    "ResolutionOrchestrator",
    "ArxivResolver",
    "MathSciNetResolver",
    "Resolver",
    "ZbMathResolver",
]
