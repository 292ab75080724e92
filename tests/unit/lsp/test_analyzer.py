"""Tests for the mlang LSP document analyzer."""

import dataclasses

import pytest

from mlang.compiler.tokens import TokenType
from mlang.compiler.visitor import DefinitionKind
from mlang.lsp.analyzer import DocumentSnapshot, analyze_document, get_word_at_position
from mlang.utils.diagnostics import ErrorCode
from mlang.utils.errors import Range

URI = "file:///ws/test.m"


class TestAnalyzeDocument:
    """Test suite for analyze_document."""

    def test_snapshot_fields(self) -> None:
        """Test that a snapshot carries every stage of the pipeline."""
        source = "function r = twice(x)\n  r = 2 * x;\nend\n"
        snapshot = analyze_document(URI, source, version=4)

        assert isinstance(snapshot, DocumentSnapshot)
        assert snapshot.uri == URI
        assert snapshot.text == source
        assert snapshot.version == 4
        assert snapshot.tokens[-1].type == TokenType.EOF
        assert len(snapshot.ast.body) == 1
        assert snapshot.diagnostics == ()
        assert snapshot.definitions_named("twice")[0].kind == DefinitionKind.FUNCTION

    def test_parser_diagnostics_are_kept(self) -> None:
        """Test that parser diagnostics end up on the snapshot."""
        snapshot = analyze_document(URI, "x = 1")
        assert [d.code for d in snapshot.diagnostics] == [ErrorCode.OUTPUT_NOT_SUPPRESSED]

    def test_snapshot_is_immutable(self) -> None:
        """Test that snapshots cannot be modified in place."""
        snapshot = analyze_document(URI, "x = 1;")
        with pytest.raises(dataclasses.FrozenInstanceError):
            snapshot.text = "y = 2;"

    def test_token_limit(self) -> None:
        """Test that exceeding the token ceiling yields a single diagnostic."""
        snapshot = analyze_document(URI, "a b c d", max_tokens=3)

        assert snapshot.tokens == ()
        assert snapshot.ast.body == ()
        assert snapshot.references == ()
        assert snapshot.definitions == ()
        assert [d.code for d in snapshot.diagnostics] == [ErrorCode.TOKEN_LIMIT_EXCEEDED]

    def test_named_lookups(self) -> None:
        """Test filtering definitions and references by name."""
        snapshot = analyze_document(URI, "x = 1;\ny = x + x;\n")
        assert len(snapshot.definitions_named("x")) == 1
        assert len(snapshot.references_named("x")) == 3
        assert snapshot.definitions_named("z") == []

    def test_lines(self) -> None:
        """Test splitting the snapshot text into lines."""
        snapshot = analyze_document(URI, "a = 1;\nb = 2;")
        assert snapshot.lines == ["a = 1;", "b = 2;"]

    def test_word_at(self) -> None:
        """Test the snapshot's cursor lookup."""
        snapshot = analyze_document(URI, "value = 1;")
        assert snapshot.word_at(0, 2) == ("value", Range.from_points(0, 0, 0, 5))


class TestWordAtPosition:
    """Test suite for get_word_at_position."""

    def test_inside_word(self) -> None:
        """Test a cursor in the middle of a name."""
        assert get_word_at_position("foo(bar)", 0, 1) == ("foo", Range.from_points(0, 0, 0, 3))

    def test_right_after_word(self) -> None:
        """Test a cursor just past the end of a name."""
        assert get_word_at_position("foo(bar)", 0, 3) == ("foo", Range.from_points(0, 0, 0, 3))

    def test_second_line(self) -> None:
        """Test a cursor on a later line."""
        word, range_ = get_word_at_position("x = 1;\ny = bar;", 1, 5)
        assert word == "bar"
        assert range_ == Range.from_points(1, 4, 1, 7)

    def test_struct_path_up_to_cursor(self) -> None:
        """Test that a dotted path is cut at the segment under the cursor."""
        assert get_word_at_position("a.b.c", 0, 2) == ("a.b", Range.from_points(0, 0, 0, 3))
        assert get_word_at_position("a.b.c", 0, 4) == ("a.b.c", Range.from_points(0, 0, 0, 5))
        assert get_word_at_position("a.b.c", 0, 0) == ("a", Range.from_points(0, 0, 0, 1))

    def test_number_is_not_a_name(self) -> None:
        """Test that numbers are not names."""
        assert get_word_at_position("x = 12", 0, 5) is None

    def test_path_stops_at_number(self) -> None:
        """Test that a number before a dot is not part of the path."""
        assert get_word_at_position("3.x", 0, 2) == ("x", Range.from_points(0, 2, 0, 3))

    @pytest.mark.parametrize(
        "text,line,character",
        [
            ("a  b", 0, 2),
            ("abc", 1, 0),
            ("abc", -1, 0),
            ("abc", 0, 10),
            ("", 0, 0),
        ],
    )
    def test_no_word(self, text: str, line: int, character: int) -> None:
        """Test cursors that are not on a name."""
        assert get_word_at_position(text, line, character) is None
