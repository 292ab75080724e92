"""
Unit tests for the diagnostic code catalog and message helpers.
"""

import pytest

from mlang.utils.diagnostics import (
    Diagnostic,
    DiagnosticLevel,
    ErrorCode,
    create_duplicate_definition_diagnostic,
    create_not_found_reference_diagnostic,
    create_wrong_arguments_diagnostic,
)
from mlang.utils.errors import Range


class TestErrorCodes:
    """Tests for the numeric code values editors filter on."""

    @pytest.mark.parametrize(
        "code,value",
        [
            (ErrorCode.OUTPUT_VECTOR, 1),
            (ErrorCode.FN_DEF_MISSING_END, 5),
            (ErrorCode.OUTPUT_NOT_SUPPRESSED, 15),
            (ErrorCode.UNEXPECTED_NL, 50),
            (ErrorCode.UNEXPECTED_DEFAULT_VALUE_ARGUMENT, 23),
            (ErrorCode.STRUCT_BAD_COMMA, 141),
            (ErrorCode.INVALID_FN_DEF_ARGUMENT, 200),
            (ErrorCode.MISSING_END_IF_STMNT, 4005),
            (ErrorCode.MISSING_END_FOR_STMNT, 4105),
            (ErrorCode.MISSING_UNTIL_DO_STMNT, 4305),
            (ErrorCode.DUPLICATE_DEFINITION, 5000),
            (ErrorCode.UNRESOLVED_REFERENCE, 5001),
            (ErrorCode.TOO_MANY_ARGUMENTS, 5002),
        ],
    )
    def test_stable_values(self, code, value):
        """Code values never change."""
        assert int(code) == value

    def test_values_are_unique(self):
        """No two codes share a value."""
        values = [int(code) for code in ErrorCode]
        assert len(values) == len(set(values))


class TestDiagnostic:
    """Tests for the Diagnostic record."""

    def test_default_level_is_error(self):
        """Diagnostics are errors unless stated otherwise."""
        diagnostic = Diagnostic(ErrorCode.UNEXPECTED_TOKEN, "x", Range.from_points(0, 0, 0, 1))
        assert diagnostic.level == DiagnosticLevel.ERROR
        assert diagnostic.is_error

    def test_str(self):
        """The string form shows level, code, position and message."""
        diagnostic = Diagnostic(
            ErrorCode.OUTPUT_NOT_SUPPRESSED,
            "Will output to the console",
            Range.from_points(2, 4, 2, 9),
            DiagnosticLevel.WARNING,
        )
        assert str(diagnostic) == "warning[15] 3:5: Will output to the console"


class TestDiagnosticHelpers:
    """Tests for the semantic diagnostic factories."""

    def test_duplicate_definition(self):
        """Duplicate definitions are errors with a 1-based line."""
        diagnostic = create_duplicate_definition_diagnostic("foo", Range.from_points(4, 9, 4, 12))
        assert diagnostic.code == ErrorCode.DUPLICATE_DEFINITION
        assert diagnostic.level == DiagnosticLevel.ERROR
        assert diagnostic.message == "'foo' is already defined. At line 5"

    def test_not_found_reference(self):
        """Unresolved references are warnings."""
        diagnostic = create_not_found_reference_diagnostic("bar", Range.from_points(0, 0, 0, 3))
        assert diagnostic.level == DiagnosticLevel.WARNING
        assert diagnostic.message == "reference 'bar' not found. At line 1"

    def test_wrong_arguments(self):
        """The message counts required and optional parameters."""
        diagnostic = create_wrong_arguments_diagnostic(
            "f", Range.from_points(1, 0, 1, 1), given=4, required=1, optional=2
        )
        assert diagnostic.code == ErrorCode.TOO_MANY_ARGUMENTS
        assert diagnostic.message == "expected 3 got 4 (1 required) arguments for 'f'. At line 2"
