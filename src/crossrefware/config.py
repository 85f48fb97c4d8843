"""Settings shared by the command line tools."""
from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import dotenv_values

from .errors import ConfigurationError
from .models import CROSSREF, SearchOrder

logger = logging.getLogger(__name__)

ENV_PREFIX = "CROSSREFWARE_"
CROSSREF_MODES = ("free", "paid")
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _default_batch_id() -> str:
    return f"ltx2crossref{os.getpid()}"


def _default_timestamp() -> str:
    return time.strftime("%Y%m%d%H%M%S", time.gmtime())


@dataclass(frozen=True)
class Settings:
    """Read-only configuration established once at startup."""

    # Crossref account
    mode: str = "free"
    email: str = ""
    username: str = ""
    password: str = ""
    search_order: str = SearchOrder.DEFAULT
    # Deposit identity
    depositor_name: str = "DEPOSITOR_NAME"
    depositor_email: str = "DEPOSITOR_EMAIL"
    registrant: str = "REGISTRANT"
    full_title: str = "FULL TITLE"
    abbrev_title: str = "ABBR. Title."
    issn: str = "1234-5678"
    coden: str = "CODEN"
    batch_id: str = ""
    timestamp: str = ""
    resource_url_template: str = ""
    # Processing
    preescaped: bool = False
    timeout: float = 10.0
    crossref_min_score: float = 60.0
    require_bibliography: bool = False

    def __post_init__(self) -> None:
        if not self.batch_id:
            object.__setattr__(self, "batch_id", _default_batch_id())
        if not self.timestamp:
            object.__setattr__(self, "timestamp", _default_timestamp())

    @classmethod
    def load(
        cls,
        path: str | Path | None = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Settings":
        """Build settings from an optional config file and the environment."""
        raw: Dict[str, str] = {}
        if path is not None:
            config_path = Path(path)
            if not config_path.is_file() or not os.access(config_path, os.R_OK):
                raise ConfigurationError(f"Cannot read options {config_path}")
            for key, value in dotenv_values(config_path).items():
                raw[key.lower()] = value if value is not None else ""

        env = os.environ if environ is None else environ
        for key, value in env.items():
            if key.startswith(ENV_PREFIX):
                raw[key[len(ENV_PREFIX):].lower()] = value

        return cls.from_mapping(raw, origin=str(path) if path else "environment")

    @classmethod
    def from_mapping(cls, values: Mapping[str, str], origin: str = "settings") -> "Settings":
        known = {f.name: f for f in fields(cls)}
        kwargs = {}
        for key, value in values.items():
            name = key.strip().lower()
            if name not in known:
                logger.warning("%s: ignoring unknown setting %r", origin, key)
                continue
            kwargs[name] = _coerce(name, known[name].type, value)
        return cls(**kwargs)

    def with_overrides(self, **overrides) -> "Settings":
        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **values)

    def check_credentials(self, order: SearchOrder) -> None:
        """Fail fast when Crossref is searched without the required account data."""
        if CROSSREF not in order:
            return
        if self.mode not in CROSSREF_MODES:
            raise ConfigurationError(
                f"Unknown Crossref mode {self.mode!r}; use 'free' or 'paid'"
            )
        if self.mode == "free" and not self.email:
            raise ConfigurationError(
                "Crossref requires a registered e-mail for the free mode queries"
            )
        if self.mode == "paid" and (not self.username or not self.password):
            raise ConfigurationError(
                "Crossref requires a username and password for the paid mode queries"
            )


def _coerce(name: str, annotation: object, value: str):
    text = str(value).strip()
    kind = annotation if isinstance(annotation, str) else getattr(annotation, "__name__", "")
    if kind == "bool":
        lowered = text.lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ConfigurationError(f"Setting {name} expects a boolean, got {value!r}")
    if kind == "float":
        try:
            return float(text)
        except ValueError as exc:
            raise ConfigurationError(f"Setting {name} expects a number, got {value!r}") from exc
    return text


__all__ = ["Settings", "CROSSREF_MODES"]
