"""
Server settings for the mlang language server.

Settings arrive from the client either as ``initializationOptions`` or
through ``workspace/didChangeConfiguration``. Both use camelCase keys,
optionally nested under an ``mlang`` section. Values are converted to the
attribute's type; values that cannot be converted are logged and ignored.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, fields, replace
from typing import Any, Optional

logger = logging.getLogger("mlang-lsp")


# Client key -> Settings attribute
_CLIENT_KEYS: dict[str, str] = {
    "maxNumberOfProblems": "max_number_of_problems",
    "maxFilesSearchDepth": "max_files_search_depth",
    "debounceDelay": "debounce_delay",
    "fileExtension": "file_extension",
    "reportUnresolvedReferences": "report_unresolved_references",
}


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("expected a number")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError("expected a whole number")
    return int(value)


def _to_optional_int(value: Any) -> Optional[int]:
    return None if value is None else _to_int(value)


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("expected a number")
    return float(value)


def _to_str(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError("expected a string")
    return value


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise TypeError("expected a boolean")


# Settings attribute -> converter for client values
_CONVERTERS: dict[str, Callable[[Any], Any]] = {
    "max_number_of_problems": _to_int,
    "max_files_search_depth": _to_optional_int,
    "debounce_delay": _to_float,
    "file_extension": _to_str,
    "report_unresolved_references": _to_bool,
}


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Tunables for analysis and diagnostics.

    Attributes:
        max_number_of_problems: Diagnostics published per document are truncated to this
        max_files_search_depth: Directory depth limit for workspace discovery, None for unbounded
        debounce_delay: Quiet period in seconds before an edited document is re-analyzed
        file_extension: Extension of source files picked up by discovery
        report_unresolved_references: Whether to warn about calls to unknown functions
    """

    max_number_of_problems: int = 1000
    max_files_search_depth: Optional[int] = None
    debounce_delay: float = 0.5
    file_extension: str = ".m"
    report_unresolved_references: bool = False

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "Settings":
        """Build settings from a client payload, falling back to defaults."""
        return cls().updated(data)

    def updated(self, data: Optional[dict[str, Any]]) -> "Settings":
        """Return a copy with the valid values present in ``data`` applied."""
        if not isinstance(data, dict):
            return self
        section = data.get("mlang")
        if isinstance(section, dict):
            data = section

        names = {f.name for f in fields(self)}
        changes: dict[str, Any] = {}
        for key, value in data.items():
            name = _CLIENT_KEYS.get(key, key)
            if name not in names:
                continue
            try:
                changes[name] = _CONVERTERS[name](value)
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring setting {key}={value!r}: {e}")
        return replace(self, **changes)
