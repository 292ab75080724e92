"""Tests for mlang LSP completions."""

import pytest
from lsprotocol import types

from mlang.compiler.tokens import KEYWORDS, NATIVE_FUNCTIONS
from mlang.compiler.visitor import Definition, DefinitionKind
from mlang.lsp.completions import (
    CompletionProvider,
    default_values,
    function_signature,
    function_snippet,
)
from mlang.utils.errors import Range

MAIN = "file:///ws/main.m"
LIB = "file:///ws/lib.m"

MAIN_SOURCE = (
    "% Adds\n"
    "function r = f(a, b = 3)\n"
    "  r = a;\n"
    "end\n"
    "x = 1;\n"
    "x = 2;\n"
    "h = @(t) t;\n"
)
LIB_SOURCE = "function g(p)\nend\nfunction f\nend\n"


@pytest.fixture
def provider(workspace_factory) -> CompletionProvider:
    index = workspace_factory()
    index.register_document(MAIN, MAIN_SOURCE)
    index.register_document(LIB, LIB_SOURCE)
    return CompletionProvider(index)


def by_label(items: list[types.CompletionItem]) -> dict[str, types.CompletionItem]:
    return {item.label: item for item in items}


class TestSignatureHelpers:
    """Test suite for signature rendering."""

    FUNCTION = Definition(
        "area", DefinitionKind.FUNCTION, Range.from_points(0, 9, 0, 13), arguments=("w", "h")
    )

    def test_signature(self) -> None:
        """Test rendering a plain signature."""
        assert function_signature(self.FUNCTION) == "area(w, h)"

    def test_signature_with_defaults(self) -> None:
        """Test that defaults are shown after their parameter."""
        assert function_signature(self.FUNCTION, {"h": "1"}) == "area(w, h = 1)"

    def test_snippet(self) -> None:
        """Test that every parameter gets a numbered tab stop."""
        assert function_snippet(self.FUNCTION, {"h": "1"}) == "area(${1:w}, ${2:h = 1})"

    def test_snippet_without_arguments(self) -> None:
        """Test the snippet for a function without parameters."""
        definition = Definition("tick", DefinitionKind.FUNCTION, Range.from_points(0, 0, 0, 4))
        assert function_snippet(definition) == "tick()"

    def test_default_values(self) -> None:
        """Test that only defaults of the function's own scope are used."""
        definitions = [
            self.FUNCTION,
            Definition(
                "h", DefinitionKind.DEFAULT_ARGUMENT, Range.from_points(0, 17, 0, 18),
                content="1", scope=("area",),
            ),
            Definition(
                "h", DefinitionKind.DEFAULT_ARGUMENT, Range.from_points(5, 17, 5, 18),
                content="9", scope=("other",),
            ),
        ]
        assert default_values(definitions, self.FUNCTION) == {"h": "1"}


class TestStaticCompletions:
    """Test suite for keyword and native function completions."""

    def test_keywords(self, provider: CompletionProvider) -> None:
        """Test that every keyword is offered once, sorted."""
        items = provider.get_keyword_completions()
        assert [item.label for item in items] == sorted(KEYWORDS)
        assert all(item.kind == types.CompletionItemKind.Keyword for item in items)

    def test_keyword_snippets(self, provider: CompletionProvider) -> None:
        """Test that block keywords expand to a snippet with documentation."""
        items = by_label(provider.get_keyword_completions())

        for_item = items["for"]
        assert for_item.insert_text_format == types.InsertTextFormat.Snippet
        assert for_item.insert_text.startswith("for ${1:var}")
        assert for_item.documentation.kind == types.MarkupKind.Markdown
        assert "The-for-Statement.html" in for_item.documentation.value

        assert items["end"].insert_text is None

    def test_native_functions(self, provider: CompletionProvider) -> None:
        """Test that every native function is offered with a documentation link."""
        items = provider.get_native_function_completions()
        assert [item.label for item in items] == sorted(NATIVE_FUNCTIONS)
        disp = by_label(items)["disp"]
        assert disp.detail == "native function"
        assert disp.documentation.value.endswith("/disp.html)")

    def test_static_items_are_cached(self, provider: CompletionProvider) -> None:
        """Test that static lists are built once."""
        assert provider.get_keyword_completions() is provider.get_keyword_completions()
        assert (
            provider.get_native_function_completions()
            is provider.get_native_function_completions()
        )


class TestDefinitionCompletions:
    """Test suite for user definition completions."""

    def test_local_definitions_once_each(self, provider: CompletionProvider) -> None:
        """Test that local names are offered once, in document order, then other files."""
        labels = [item.label for item in provider.get_definition_completions(MAIN)]
        assert labels == ["r", "f", "a", "b", "x", "h", "t", "g"]

    def test_function_snippet_item(self, provider: CompletionProvider) -> None:
        """Test that functions insert a call snippet with their defaults."""
        items = by_label(provider.get_definition_completions(MAIN))
        f = items["f"]
        assert f.kind == types.CompletionItemKind.Function
        assert f.insert_text == "f(${1:a}, ${2:b = 3})"
        assert f.insert_text_format == types.InsertTextFormat.Snippet
        assert f.data == {"uri": MAIN, "name": "f"}

    def test_other_file_function(self, provider: CompletionProvider) -> None:
        """Test that functions from other files point back at their file."""
        g = by_label(provider.get_definition_completions(MAIN))["g"]
        assert g.insert_text == "g(${1:p})"
        assert g.data == {"uri": LIB, "name": "g"}

    def test_kinds(self, provider: CompletionProvider) -> None:
        """Test the completion kinds of variables and anonymous functions."""
        items = by_label(provider.get_definition_completions(MAIN))
        assert items["x"].kind == types.CompletionItemKind.Variable
        assert items["h"].kind == types.CompletionItemKind.Function
        assert items["h"].insert_text is None

    def test_unknown_document(self, provider: CompletionProvider) -> None:
        """Test that an unknown document still sees workspace functions."""
        labels = [item.label for item in provider.get_definition_completions("file:///ws/new.m")]
        assert labels == ["f", "g"]

    def test_all_completions(self, provider: CompletionProvider) -> None:
        """Test that definitions, keywords and native functions are combined."""
        items = provider.get_completions(MAIN)
        assert len(items) == 8 + len(KEYWORDS) + len(NATIVE_FUNCTIONS)
        assert items[0].label == "r"


class TestCompletionResolve:
    """Test suite for completionItem/resolve."""

    def resolve(self, provider: CompletionProvider, uri: str, name: str) -> types.CompletionItem:
        item = types.CompletionItem(label=name, data={"uri": uri, "name": name})
        return provider.resolve(item)

    def test_function(self, provider: CompletionProvider) -> None:
        """Test that a function gets its signature and documentation."""
        item = self.resolve(provider, MAIN, "f")
        assert item.detail == "function f(a, b = 3)"
        assert item.documentation.kind == types.MarkupKind.Markdown
        assert item.documentation.value == "```\nAdds\n```"

    def test_anonymous_function(self, provider: CompletionProvider) -> None:
        """Test that an anonymous function shows its parameters."""
        item = self.resolve(provider, MAIN, "h")
        assert item.detail == "function h(t)"
        assert item.documentation is None

    def test_default_argument(self, provider: CompletionProvider) -> None:
        """Test that a default argument shows its value."""
        item = self.resolve(provider, MAIN, "b")
        assert item.detail == "b = 3"

    def test_variable(self, provider: CompletionProvider) -> None:
        """Test that other definitions show their kind."""
        item = self.resolve(provider, MAIN, "x")
        assert item.detail == "variable"

    def test_other_file(self, provider: CompletionProvider) -> None:
        """Test resolving a function defined in another file."""
        item = self.resolve(provider, LIB, "g")
        assert item.detail == "function g(p)"

    @pytest.mark.parametrize("data", [None, "f", {"name": "f"}])
    def test_items_without_definition_data(self, provider: CompletionProvider, data) -> None:
        """Test that items without definition data are returned unchanged."""
        item = types.CompletionItem(label="f", data=data)
        resolved = provider.resolve(item)
        assert resolved is item
        assert resolved.detail is None
