"""
Conversion of analyzer diagnostics into LSP diagnostics.

The analyzer reports problems as ``mlang.utils.diagnostics.Diagnostic``
objects. This module maps them onto ``lsprotocol`` types for publishing.
"""

from lsprotocol import types

from mlang.utils.diagnostics import Diagnostic, DiagnosticLevel
from mlang.utils.errors import Position, Range

# Map diagnostic levels to LSP severities
LEVEL_TO_SEVERITY: dict[DiagnosticLevel, types.DiagnosticSeverity] = {
    DiagnosticLevel.ERROR: types.DiagnosticSeverity.Error,
    DiagnosticLevel.WARNING: types.DiagnosticSeverity.Warning,
    DiagnosticLevel.INFORMATION: types.DiagnosticSeverity.Information,
    DiagnosticLevel.HINT: types.DiagnosticSeverity.Hint,
}

DIAGNOSTIC_SOURCE = "mlang"


def to_lsp_position(position: Position) -> types.Position:
    return types.Position(line=position.line, character=position.character)


def to_lsp_range(range_: Range) -> types.Range:
    """Convert an analyzer range to an LSP range."""
    return types.Range(start=to_lsp_position(range_.start), end=to_lsp_position(range_.end))


def to_lsp_diagnostic(diagnostic: Diagnostic) -> types.Diagnostic:
    """
    Convert one analyzer diagnostic.

    The numeric error code is carried over unchanged so clients can filter
    on it.
    """
    return types.Diagnostic(
        range=to_lsp_range(diagnostic.range),
        message=diagnostic.message,
        severity=LEVEL_TO_SEVERITY.get(diagnostic.level, types.DiagnosticSeverity.Error),
        code=int(diagnostic.code),
        source=DIAGNOSTIC_SOURCE,
    )


def to_lsp_diagnostics(diagnostics: list[Diagnostic]) -> list[types.Diagnostic]:
    return [to_lsp_diagnostic(d) for d in diagnostics]
