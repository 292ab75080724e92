"""
Diagnostics for the mlang analyzer.

Every problem the parser or the workspace index finds is reported as a
``Diagnostic`` carrying a numeric ``ErrorCode``. The numeric values are part
of the public surface: editors filter and suppress problems by code, so
existing values never change and retired codes are never reused.

Code ranges:
- 1-99: statement and expression syntax
- 140-199: struct literals
- 200-299: function headers
- 4000-4599: compound statements (if, for, while, do-until, switch, try)
- 5000-5099: semantic checks across the symbol index
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum

from mlang.utils.errors import Range


# =============================================================================
# Error Codes Catalog
# =============================================================================


class ErrorCode(IntEnum):
    """Closed catalog of diagnostic codes."""

    # Statements and expressions
    OUTPUT_VECTOR = 1
    EXPECTED_FN_IDENT = 2
    AST_MAX_STMNT_REACHED = 3
    FN_DEF_MISSING_END = 5
    MISSING_PAREN = 6
    EXPECTED_COMMA_PAREN = 7
    INVALID_ARGUMENT = 8
    INVALID_DEFAULT_VALUE = 9
    UNEXPECTED_TOKEN_EXPR = 12
    MISSING_RPAREN_EXPR = 13
    EXPECTED_COMMA_OUTPUTS = 14
    OUTPUT_NOT_SUPPRESSED = 15
    UNEXPECTED_VECTOR_VALUE = 21
    MISSING_RBRACKET = 22
    # Reserved: named arguments in calls are accepted without a diagnostic
    UNEXPECTED_DEFAULT_VALUE_ARGUMENT = 23
    UNEXPECTED_TOKEN = 24
    UNTERMINATED_STRING = 25
    ILLEGAL_CHARACTER = 26
    TOKEN_LIMIT_EXCEEDED = 27
    UNEXPECTED_NL = 50

    # Struct literals
    STRUCT_BAD_ARGS = 140
    STRUCT_BAD_COMMA = 141

    # Function headers
    INVALID_FN_DEF_ARGUMENT = 200

    # Compound statements
    EXPECTED_VALID_IF_STMNT = 4002
    MISSING_END_IF_STMNT = 4005
    EXPECTED_VALID_FOR_STMNT = 4100
    MISSING_END_FOR_STMNT = 4105
    EXPECTED_VALID_WHILE_STMNT = 4200
    MISSING_END_WHILE_STMNT = 4205
    EXPECTED_VALID_DO_UNTIL_STMNT = 4300
    MISSING_UNTIL_DO_STMNT = 4305
    EXPECTED_VALID_SWITCH_STMNT = 4400
    MISSING_END_SWITCH_STMNT = 4405
    MISSING_END_TRY_STMNT = 4505

    # Semantic checks
    DUPLICATE_DEFINITION = 5000
    UNRESOLVED_REFERENCE = 5001
    TOO_MANY_ARGUMENTS = 5002


class DiagnosticLevel(Enum):
    """Severity level of a diagnostic message."""

    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"
    HINT = "hint"


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """
    A single problem found in a document.

    Attributes:
        code: Stable numeric code
        message: Human readable description
        range: Where the problem is
        level: Severity
    """

    code: ErrorCode
    message: str
    range: Range
    level: DiagnosticLevel = DiagnosticLevel.ERROR

    @property
    def is_error(self) -> bool:
        return self.level == DiagnosticLevel.ERROR

    def __str__(self) -> str:
        return f"{self.level.value}[{int(self.code)}] {self.range.start}: {self.message}"


# =============================================================================
# Semantic Diagnostic Helpers
# =============================================================================


def create_duplicate_definition_diagnostic(name: str, range: Range) -> Diagnostic:
    """Create a diagnostic for a name defined twice at the top level of a file."""
    return Diagnostic(
        ErrorCode.DUPLICATE_DEFINITION,
        f"'{name}' is already defined. At line {range.start.line + 1}",
        range,
    )


def create_not_found_reference_diagnostic(name: str, range: Range) -> Diagnostic:
    """Create a diagnostic for a function reference with no known definition."""
    return Diagnostic(
        ErrorCode.UNRESOLVED_REFERENCE,
        f"reference '{name}' not found. At line {range.start.line + 1}",
        range,
        DiagnosticLevel.WARNING,
    )


def create_wrong_arguments_diagnostic(
    name: str,
    range: Range,
    given: int,
    required: int,
    optional: int,
) -> Diagnostic:
    """
    Create a diagnostic for a call passing more arguments than the callee takes.

    Args:
        name: Called function
        range: Location of the call
        given: Number of arguments at the call site
        required: Parameters without a default value
        optional: Parameters with a default value
    """
    return Diagnostic(
        ErrorCode.TOO_MANY_ARGUMENTS,
        f"expected {required + optional} got {given} ({required} required) "
        f"arguments for '{name}'. At line {range.start.line + 1}",
        range,
    )
