"""Tests for the mlang LSP settings."""

import dataclasses

import pytest

from mlang.lsp.settings import Settings


class TestSettings:
    """Test suite for Settings."""

    def test_defaults(self) -> None:
        """Test the default values."""
        settings = Settings()
        assert settings.max_number_of_problems == 1000
        assert settings.max_files_search_depth is None
        assert settings.debounce_delay == 0.5
        assert settings.file_extension == ".m"
        assert settings.report_unresolved_references is False

    def test_from_none(self) -> None:
        """Test that a missing payload gives the defaults."""
        assert Settings.from_dict(None) == Settings()

    def test_client_keys(self) -> None:
        """Test that camelCase client keys are mapped onto attributes."""
        settings = Settings.from_dict(
            {
                "maxNumberOfProblems": 5,
                "maxFilesSearchDepth": 2,
                "debounceDelay": 0.1,
                "fileExtension": ".octave",
                "reportUnresolvedReferences": True,
            }
        )
        assert settings == Settings(
            max_number_of_problems=5,
            max_files_search_depth=2,
            debounce_delay=0.1,
            file_extension=".octave",
            report_unresolved_references=True,
        )

    def test_section(self) -> None:
        """Test that values may be nested under an 'mlang' section."""
        settings = Settings.from_dict({"mlang": {"maxNumberOfProblems": 7}})
        assert settings.max_number_of_problems == 7

    def test_attribute_names(self) -> None:
        """Test that attribute names are accepted as keys too."""
        settings = Settings.from_dict({"debounce_delay": 0.2})
        assert settings.debounce_delay == 0.2

    def test_unknown_keys_ignored(self) -> None:
        """Test that unrelated keys are ignored."""
        assert Settings.from_dict({"editor.tabSize": 4, "python": {}}) == Settings()

    def test_updated_keeps_other_values(self) -> None:
        """Test that an update only touches the keys it carries."""
        settings = Settings(max_number_of_problems=3, debounce_delay=0.0)
        updated = settings.updated({"fileExtension": ".mat"})

        assert updated.max_number_of_problems == 3
        assert updated.debounce_delay == 0.0
        assert updated.file_extension == ".mat"
        assert settings.file_extension == ".m"

    @pytest.mark.parametrize("payload", [None, [], "mlang", 3])
    def test_updated_ignores_non_mappings(self, payload) -> None:
        """Test that payloads that are not objects leave settings unchanged."""
        settings = Settings(max_number_of_problems=9)
        assert settings.updated(payload) is settings

    def test_values_converted_to_attribute_types(self) -> None:
        """Test that numbers and booleans sent as strings are converted."""
        settings = Settings.from_dict(
            {
                "maxNumberOfProblems": "100",
                "maxFilesSearchDepth": 3.0,
                "debounceDelay": "0.25",
                "reportUnresolvedReferences": "true",
            }
        )
        assert settings.max_number_of_problems == 100
        assert isinstance(settings.max_number_of_problems, int)
        assert settings.max_files_search_depth == 3
        assert settings.debounce_delay == 0.25
        assert settings.report_unresolved_references is True

    @pytest.mark.parametrize(
        "payload",
        [
            {"maxNumberOfProblems": "many"},
            {"maxNumberOfProblems": True},
            {"maxNumberOfProblems": 2.5},
            {"maxFilesSearchDepth": [1]},
            {"debounceDelay": "soon"},
            {"fileExtension": 3},
            {"reportUnresolvedReferences": "maybe"},
        ],
    )
    def test_invalid_values_ignored(self, payload, caplog) -> None:
        """Test that values of the wrong type keep the current setting and are logged."""
        settings = Settings(max_number_of_problems=9)
        assert settings.updated(payload) == settings
        assert "Ignoring setting" in caplog.text

    def test_invalid_value_keeps_valid_ones(self) -> None:
        """Test that one bad value does not discard the rest of the payload."""
        settings = Settings.from_dict({"maxNumberOfProblems": "many", "debounceDelay": 0.1})
        assert settings.max_number_of_problems == 1000
        assert settings.debounce_delay == 0.1

    def test_none_depth_is_unbounded(self) -> None:
        """Test that null clears the discovery depth limit."""
        settings = Settings(max_files_search_depth=2).updated({"maxFilesSearchDepth": None})
        assert settings.max_files_search_depth is None

    def test_frozen(self) -> None:
        """Test that settings are immutable."""
        with pytest.raises(dataclasses.FrozenInstanceError):
            Settings().debounce_delay = 1.0
