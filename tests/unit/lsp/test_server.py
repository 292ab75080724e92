"""Tests for the mlang language server request handlers."""

import pytest
from lsprotocol import types

from mlang.lsp.server import MlangLanguageServer, create_server
from mlang.lsp.settings import Settings

URI = "file:///ws/main.m"
SOURCE = "x = 1\ny = 2\n"


@pytest.fixture
def server() -> MlangLanguageServer:
    server = MlangLanguageServer(Settings(debounce_delay=0.0))
    server.published = []
    server.text_document_publish_diagnostics = server.published.append
    return server


def open_document(server: MlangLanguageServer, text: str = SOURCE) -> None:
    server._on_did_open(
        types.DidOpenTextDocumentParams(
            text_document=types.TextDocumentItem(
                uri=URI, language_id="octave", version=1, text=text
            )
        )
    )


class TestDocumentSynchronization:
    """Test suite for open, close and configuration notifications."""

    def test_open_publishes(self, server: MlangLanguageServer) -> None:
        """Test that opening a document publishes its diagnostics."""
        open_document(server)

        assert URI in server.index
        (params,) = server.published
        assert params.uri == URI
        assert [d.code for d in params.diagnostics] == [15, 15]

    def test_open_replaces_stale_snapshot(self, server: MlangLanguageServer) -> None:
        """Test that an editor buffer replaces a differing snapshot from disk."""
        server.index.register_document(URI, "x = 1;\n")
        open_document(server)

        assert server.index.get_snapshot(URI).text == SOURCE
        assert len(server.published) == 1

    def test_close_clears_diagnostics(self, server: MlangLanguageServer) -> None:
        """Test that closing a document evicts it and clears its diagnostics."""
        open_document(server)
        server._on_did_close(
            types.DidCloseTextDocumentParams(
                text_document=types.TextDocumentIdentifier(uri=URI)
            )
        )

        assert URI not in server.index
        assert server.published[-1].diagnostics == []

    def test_closed_documents_are_not_published(self, server: MlangLanguageServer) -> None:
        """Test that diagnostics are only sent for open documents."""
        server.index.register_document(URI, SOURCE)
        server.index.publish(URI)
        assert server.published == []

    def test_configuration_republishes(self, server: MlangLanguageServer) -> None:
        """Test that new settings re-validate open documents."""
        open_document(server)
        server._on_did_change_configuration(
            types.DidChangeConfigurationParams(settings={"mlang": {"maxNumberOfProblems": 1}})
        )

        assert server.settings.max_number_of_problems == 1
        assert len(server.published[-1].diagnostics) == 1


class TestServerSettings:
    """Test suite for settings and discovery helpers."""

    def test_initial_settings(self, server: MlangLanguageServer) -> None:
        """Test that constructor settings reach the index."""
        assert server.settings.debounce_delay == 0.0

    def test_apply_settings(self, server: MlangLanguageServer) -> None:
        """Test that client payloads are merged into the settings."""
        server.apply_settings({"reportUnresolvedReferences": True})
        assert server.settings.report_unresolved_references is True
        assert server.settings.debounce_delay == 0.0

    def test_discover_without_root(self, server: MlangLanguageServer) -> None:
        """Test that discovery is skipped without a workspace root."""
        assert server.discover(None) == []
        assert len(server.index) == 0


class TestServerCreation:
    """Test suite for building a server with its handlers."""

    def test_create_server(self) -> None:
        """Test that a server can be created with every feature registered."""
        server = create_server(Settings(debounce_delay=0.0))
        features = server.protocol.fm.features

        for method in (
            types.TEXT_DOCUMENT_DID_OPEN,
            types.TEXT_DOCUMENT_DID_CHANGE,
            types.TEXT_DOCUMENT_DID_CLOSE,
            types.TEXT_DOCUMENT_COMPLETION,
            types.COMPLETION_ITEM_RESOLVE,
            types.TEXT_DOCUMENT_DEFINITION,
            types.TEXT_DOCUMENT_REFERENCES,
            types.WORKSPACE_DID_CHANGE_CONFIGURATION,
            types.INITIALIZED,
        ):
            assert method in features

    def test_registered_handler_forwards(self) -> None:
        """Test that a registered handler reaches the server's document handling."""
        server = create_server(Settings(debounce_delay=0.0))
        published: list[types.PublishDiagnosticsParams] = []
        server.text_document_publish_diagnostics = published.append

        handler = server.protocol.fm.features[types.TEXT_DOCUMENT_DID_OPEN]
        handler(
            types.DidOpenTextDocumentParams(
                text_document=types.TextDocumentItem(
                    uri=URI, language_id="octave", version=1, text=SOURCE
                )
            )
        )

        assert URI in server.index
        assert len(published) == 1
