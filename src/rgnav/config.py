"""Search defaults, overridable through RGNAV_* environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Literal, Optional, Tuple


CaseMode = Literal["smart", "sensitive", "insensitive"]
CASE_MODES: Tuple[str, ...] = ("smart", "sensitive", "insensitive")

DEFAULT_CHUNK_SIZE = 4096

logger = logging.getLogger(__name__)


def rgnav_home() -> Path:
    """Directory holding persisted state (``~/.rgnav`` by default)."""
    return Path(os.getenv("RGNAV_HOME", str(Path.home() / ".rgnav")))


@dataclass(frozen=True)
class SearchOptions:
    """Options handed to ripgrep for every search."""
    executable: str = "rg"
    context: int = 0
    case: CaseMode = "smart"
    heading: bool = False
    types: Tuple[str, ...] = ()
    chunk_size: int = DEFAULT_CHUNK_SIZE

    @staticmethod
    def _env_int(name: str, minimum: int = 0) -> Optional[int]:
        value = os.getenv(name)
        if value is None:
            return None
        try:
            number = int(value)
        except ValueError:
            logger.warning(f"Ignoring {name}={value!r}: not an integer")
            return None
        if number < minimum:
            logger.warning(f"Ignoring {name}={value!r}: must be at least {minimum}")
            return None
        return number

    @staticmethod
    def _env_bool(name: str) -> Optional[bool]:
        value = os.getenv(name)
        if value is None:
            return None
        return value.strip().lower() in ("1", "true", "yes", "on")

    @classmethod
    def from_env(cls) -> "SearchOptions":
        case = os.getenv("RGNAV_CASE")
        if case is not None and case not in CASE_MODES:
            logger.warning(f"Ignoring RGNAV_CASE={case!r}: expected one of {', '.join(CASE_MODES)}")
        types = os.getenv("RGNAV_TYPES")
        overrides = {
            "executable": os.getenv("RGNAV_EXECUTABLE") or None,
            "context": cls._env_int("RGNAV_CONTEXT"),
            "case": case if case in CASE_MODES else None,
            "heading": cls._env_bool("RGNAV_HEADING"),
            "types": tuple(t.strip() for t in types.split(",") if t.strip()) if types else None,
            "chunk_size": cls._env_int("RGNAV_CHUNK_SIZE", minimum=1),
        }
        cleaned = {k: v for k, v in overrides.items() if v is not None}
        return cls(**cleaned) if cleaned else cls()

    def with_overrides(self, **overrides) -> "SearchOptions":
        values = {k: v for k, v in overrides.items() if v is not None}
        if "types" in values:
            values["types"] = tuple(values["types"])
        return replace(self, **values)
