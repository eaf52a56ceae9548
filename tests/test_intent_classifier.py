"""
Tests for objective classification.

Run with:
$ pytest -q
"""

import pytest

from rapidcli.tools.intent_classifier import (
    IntentClassifier,
    InvalidObjectiveError,
)

classifier = IntentClassifier()


def test_lint_objective_with_yaml_file() -> None:
    """Task, path, extension and parameters should all be extracted."""

    request = classifier.classify("lint my config.yaml file")
    assert request.task == "lint"
    assert request.target_path == "config.yaml"
    assert request.file_extension == ".yaml"
    assert request.parameters["target"] == "config.yaml"
    assert request.parameters["extension"] == "yaml"
    assert request.contains_keyword("LINT")


def test_first_task_in_table_order_wins() -> None:
    """'security' is checked before 'lint', so it wins when both appear."""

    request = classifier.classify("lint and run a security review")
    assert request.task == "security"


def test_multi_word_signal_matches_as_phrase() -> None:
    request = classifier.classify("check the repo for a leaked api key")
    assert request.task == "secret-scanning"


def test_spanish_signals() -> None:
    assert classifier.classify("ejecuta las pruebas unitarias").task == "testing"
    assert classifier.classify("convierte el archivo").task == "conversion"


def test_scan_falls_back_to_analysis() -> None:
    assert classifier.classify("please scan everything").task == "analysis"


def test_no_task() -> None:
    request = classifier.classify("hello there")
    assert request.task is None
    assert request.target_path is None
    assert dict(request.parameters) == {}


def test_json_extension_is_not_cut_to_js() -> None:
    """A known extension must end at a word boundary."""

    request = classifier.classify("convert data.json please")
    assert request.target_path == "data.json"
    assert request.file_extension == ".json"


def test_language_from_keyword() -> None:
    assert classifier.classify("analiza este proyecto c#").language == "csharp"
    assert classifier.classify("format the dotnet solution").language == "csharp"
    assert classifier.classify("review my python code").language == "python"


def test_language_from_extension() -> None:
    request = classifier.classify("lint src/app/main.rs")
    assert request.language == "rust"
    assert request.parameters["language"] == "rust"


def test_path_token_is_trimmed() -> None:
    """Surrounding quotes and trailing punctuation are not part of the path."""

    request = classifier.classify("list the contents of './build/output',")
    assert request.target_path == "./build/output"
    assert request.file_extension is None


def test_urls_are_not_paths() -> None:
    request = classifier.classify("fetch https://example.com/page now")
    assert request.target_path is None


def test_existing_relative_path_is_detected(tmp_path, monkeypatch) -> None:
    """A bare word counts as a path when it exists relative to the working directory."""

    (tmp_path / "services").mkdir()
    monkeypatch.chdir(tmp_path)
    request = classifier.classify("run tests in services")
    assert request.task == "testing"
    assert request.target_path == "services"


@pytest.mark.parametrize("objective", ["", "   ", "\n\t"])
def test_empty_objective_is_rejected(objective: str) -> None:
    """Blank objectives raise *InvalidObjectiveError*."""

    with pytest.raises(InvalidObjectiveError):
        classifier.classify(objective)
