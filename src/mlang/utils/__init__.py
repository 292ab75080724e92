"""
mlang Utilities Package.

Source positions, error types and diagnostics shared by the analyzer.
"""

from mlang.utils.diagnostics import (
    Diagnostic,
    DiagnosticLevel,
    ErrorCode,
    create_duplicate_definition_diagnostic,
    create_not_found_reference_diagnostic,
    create_wrong_arguments_diagnostic,
)
from mlang.utils.errors import MlangError, Position, Range, TokenizerError

__all__ = [
    "Diagnostic",
    "DiagnosticLevel",
    "ErrorCode",
    "MlangError",
    "Position",
    "Range",
    "TokenizerError",
    "create_duplicate_definition_diagnostic",
    "create_not_found_reference_diagnostic",
    "create_wrong_arguments_diagnostic",
]
