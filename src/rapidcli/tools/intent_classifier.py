"""
Lightweight intent classification for tool selection.

Turns a free-text objective into a :class:`ToolRequest`: the task it asks for, the language and
file it mentions, and the keyword set used for scoring registered tools.  Signals include Spanish
words because the tool registry is shared with Spanish-speaking users.
"""

import logging
import os
import re
from dataclasses import (
    dataclass,
    field,
)
from types import MappingProxyType
from typing import (
    FrozenSet,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

logger = logging.getLogger(__name__)


class InvalidObjectiveError(ValueError):
    """Raised when an objective is empty or whitespace only."""


@dataclass(frozen=True)
class ToolRequest:
    """Normalized signature of an objective, used to score tools."""

    objective: str
    task: Optional[str] = None
    language: Optional[str] = None
    file_extension: Optional[str] = None  # includes the leading dot
    target_path: Optional[str] = None
    keywords: FrozenSet[str] = frozenset()
    parameters: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def contains_keyword(self, keyword: str) -> bool:
        """Case-insensitive keyword membership."""
        return keyword.lower() in self.keywords


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------
# Order matters: the first task whose signals match wins.
TASK_SIGNALS: Sequence[Tuple[str, Tuple[str, ...]]] = (
    (
        "security",
        (
            "security",
            "seguridad",
            "vulnerability",
            "vulnerabilidad",
            "sast",
            "semgrep",
            "owasp",
            "auditar",
        ),
    ),
    ("secret-scanning", ("secret", "secreto", "credencial", "gitleaks", "api key")),
    ("lint", ("lint", "linter", "formatea", "format", "dotnet-format", "style", "analizador")),
    ("testing", ("test", "tests", "pruebas", "coverage", "unitarias")),
    ("documentation", ("docfx", "documenta", "documentación", "dokka", "docs")),
    ("dependency", ("dependencia", "dependencies", "árbol", "tree", "sbom")),
    ("analysis", ("análisis", "analysis", "analiza", "static")),
    ("conversion", ("convierte", "convert", "transforma", "traduce", "yq", "yaml", "json", "xml")),
    ("logs", ("log", "logs", "registro", "traza")),
)

EXTENSION_LANGUAGES: Mapping[str, str] = MappingProxyType(
    {
        ".cs": "csharp",
        ".csproj": "csharp",
        ".sln": "csharp",
        ".fs": "fsharp",
        ".vb": "vbnet",
        ".py": "python",
        ".js": "javascript",
        ".jsx": "javascript",
        ".ts": "typescript",
        ".tsx": "typescript",
        ".java": "java",
        ".kt": "kotlin",
        ".kts": "kotlin",
        ".go": "go",
        ".rs": "rust",
        ".php": "php",
        ".rb": "ruby",
    }
)

_LANGUAGE_ALIASES = {"c#": "csharp", "csharp": "csharp", "dotnet": "csharp", "f#": "fsharp"}

_KEYWORD_DELIMITERS = re.compile(r"[\s.,;:!?\"'()\[\]]+")
_FILE_PATTERN = re.compile(
    r"(?P<path>\S+\.(?:cs|fs|vb|py|rb|js|ts|tsx|jsx|java|kt|kts|go|rs|php|json|ya?ml|md|xml"
    r"|gradle|sln|csproj))\b",
    re.IGNORECASE,
)
# ``\b`` does not work after "#", so word edges are spelled out
_LANGUAGE_PATTERN = re.compile(
    r"(?<![\w#])(c#|csharp|dotnet|f#|javascript|typescript|python|java|kotlin|go|rust|php|ruby)"
    r"(?![\w#])",
    re.IGNORECASE,
)
_DRIVE_LETTER = re.compile(r"^[A-Za-z]:")
_SURROUNDING = "\"'`()[]{}<>"
_TRAILING = ",;:!?"


class IntentClassifier:
    """Heuristic classifier; stateless and safe to share between threads."""

    def classify(self, objective: str) -> ToolRequest:
        """
        Build a :class:`ToolRequest` from *objective*.

        Raises
        ------
        InvalidObjectiveError
            If *objective* is empty or whitespace.
        """
        if objective is None or not objective.strip():
            raise InvalidObjectiveError("Objective cannot be empty.")

        lowered = objective.lower()
        keywords = self.extract_keywords(lowered)
        task = self.determine_task(keywords, lowered)
        target_path = self.extract_path(objective)
        language = self.extract_language(lowered, target_path)
        extension = _extension(target_path)

        parameters = {}
        if target_path:
            parameters["target"] = target_path
        if extension:
            parameters["extension"] = extension.lstrip(".")
        if language:
            parameters["language"] = language

        request = ToolRequest(
            objective=objective,
            task=task,
            language=language,
            file_extension=extension,
            target_path=target_path,
            keywords=keywords,
            parameters=MappingProxyType(parameters),
        )
        logger.debug(
            "Classified objective: task=%s language=%s path=%s", task, language, target_path
        )
        return request

    # -- steps -------------------------------------------------------------
    @staticmethod
    def extract_keywords(lowered: str) -> FrozenSet[str]:
        return frozenset(word for word in _KEYWORD_DELIMITERS.split(lowered) if word)

    @staticmethod
    def determine_task(keywords: FrozenSet[str], lowered: str) -> Optional[str]:
        for task, signals in TASK_SIGNALS:
            for signal in signals:
                # Multi-word signals can never be a single keyword
                hit = signal in lowered if " " in signal else signal in keywords
                if hit:
                    return task
        if "scan" in lowered:
            return "analysis"
        return None

    @staticmethod
    def extract_path(objective: str) -> Optional[str]:
        match = _FILE_PATTERN.search(objective)
        if match:
            return match.group("path")

        for candidate in _path_candidates(objective):
            if _looks_like_path(candidate) or _exists_relative(candidate):
                return candidate
        return None

    @staticmethod
    def extract_language(lowered: str, path: Optional[str]) -> Optional[str]:
        match = _LANGUAGE_PATTERN.search(lowered)
        if match:
            value = match.group(1).lower()
            return _LANGUAGE_ALIASES.get(value, value)
        extension = _extension(path)
        if extension:
            return EXTENSION_LANGUAGES.get(extension)
        return None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _path_candidates(objective: str):
    for token in objective.split():
        trimmed = token.rstrip(_TRAILING).strip(_SURROUNDING).rstrip(_TRAILING)
        if trimmed and set(trimmed) != {"."}:
            trimmed = trimmed.rstrip(".")
        if trimmed:
            yield trimmed


def _looks_like_path(value: str) -> bool:
    if "://" in value:
        return False
    if value in (".", ".."):
        return True
    if value.startswith(("./", "../", ".\\", "..\\")):
        return True
    if "/" in value or "\\" in value:
        return True
    return bool(_DRIVE_LETTER.match(value))


def _exists_relative(candidate: str) -> bool:
    try:
        return os.path.exists(os.path.join(os.getcwd(), candidate))
    except (OSError, ValueError):
        return False


def _extension(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    _, ext = os.path.splitext(path.replace("\\", "/").rsplit("/", 1)[-1])
    return ext.lower() or None
