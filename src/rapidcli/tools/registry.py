"""
Declarative tool registry.

Tools are described in a YAML document (``agent.tools.yaml`` by default).  On every reload each entry
is bound to a provider and probed for availability; the resulting descriptors replace the previous
snapshot in one assignment, so readers of :attr:`ToolRegistry.tools` never wait on a reload.
"""

import logging
import os
import re
import sys
import threading
from dataclasses import dataclass
from typing import (
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
)

import yaml
from pydantic import ValidationError

from rapidcli.config import Settings
from rapidcli.core.cancellation import (
    CancellationToken,
    OperationCancelled,
    check_cancelled,
)
from rapidcli.tools.intent_classifier import ToolRequest
from rapidcli.tools.models import (
    ToolAvailability,
    ToolConfiguration,
)
from rapidcli.tools.providers import BaseToolProvider

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_FILE = "agent.tools.yaml"

# Resolution weights
TASK_WEIGHT = 6
LANGUAGE_WEIGHT = 3
EXTENSION_WEIGHT = 2
CONVERSION_BONUS = 2


class ConfigurationError(RuntimeError):
    """Raised when the registry document cannot be read or validated."""


class RegistryLoader(yaml.SafeLoader):
    """Safe loader reading only ``true``/``false`` as booleans, so ``off`` or ``yes`` stay text."""


RegistryLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:bool"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
RegistryLoader.add_implicit_resolver(
    "tag:yaml.org,2002:bool", re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"), list("tTfF")
)


@dataclass(frozen=True)
class ToolDescriptor:
    """A configured tool bound to its provider and current availability."""

    configuration: ToolConfiguration
    provider: Optional[BaseToolProvider]
    availability: ToolAvailability

    @property
    def name(self) -> str:
        return self.configuration.name

    @property
    def display_name(self) -> str:
        return self.configuration.display_name or self.configuration.name

    @property
    def is_available(self) -> bool:
        return self.availability.available


def _same(left: Optional[str], right: Optional[str]) -> bool:
    return (left or "").lower() == (right or "").lower()


def score_tool(configuration: ToolConfiguration, request: ToolRequest) -> int:
    """Score how well *configuration* matches *request*; 0 means no match."""
    score = 0
    if request.task and any(_same(task, request.task) for task in configuration.tasks):
        score += TASK_WEIGHT
    if request.language and any(_same(lang, request.language) for lang in configuration.languages):
        score += LANGUAGE_WEIGHT
    if request.file_extension:
        wanted = request.file_extension.lstrip(".")
        if any(_same(ext.lstrip("."), wanted) for ext in configuration.file_extensions):
            score += EXTENSION_WEIGHT
    score += sum(1 for keyword in configuration.intent_keywords if request.contains_keyword(keyword))
    if (
        any(_same(task, "conversion") for task in configuration.tasks)
        and request.task is None
        and request.file_extension is not None
    ):
        score += CONVERSION_BONUS
    return score


def _priority(descriptor: ToolDescriptor) -> int:
    priority = descriptor.configuration.priority
    return sys.maxsize if priority is None else priority


def select_best(
    descriptors: Iterable[ToolDescriptor], request: ToolRequest
) -> Tuple[Optional[ToolDescriptor], int]:
    """Pick the highest scoring available descriptor; ties go to the lower priority value."""
    best: Optional[ToolDescriptor] = None
    best_score = 0
    for descriptor in descriptors:
        score = score_tool(descriptor.configuration, request)
        if score <= 0 or not descriptor.is_available:
            continue
        if (
            best is None
            or score > best_score
            or (score == best_score and _priority(descriptor) < _priority(best))
        ):
            best, best_score = descriptor, score
    return best, best_score


class ToolRegistry:
    """Loads registry entries and keeps the current descriptor snapshot."""

    def __init__(self, settings: Settings, providers: Sequence[BaseToolProvider]) -> None:
        self.settings = settings
        self.providers: Tuple[BaseToolProvider, ...] = tuple(providers)
        self._lock = threading.Lock()
        self._tools: Tuple[ToolDescriptor, ...] = ()

    @property
    def tools(self) -> Tuple[ToolDescriptor, ...]:
        """Current snapshot; never blocks."""
        return self._tools

    @property
    def registry_path(self) -> str:
        candidate = self.settings.TOOLS_REGISTRY_PATH or DEFAULT_REGISTRY_FILE
        return os.path.abspath(os.path.expanduser(candidate))

    def reload(self, cancel: CancellationToken | None = None) -> Tuple[ToolDescriptor, ...]:
        """Re-read the registry and rebuild every descriptor."""
        with self._lock:
            try:
                configurations = self._load_document()
            except ConfigurationError as exc:
                logger.error("Tool registry unavailable: %s", exc)
                self._tools = ()
                return self._tools

            descriptors: List[ToolDescriptor] = []
            for configuration in configurations:
                check_cancelled(cancel)
                descriptors.append(self._bind(configuration, cancel))

            self._tools = tuple(descriptors)
            logger.info(
                "Loaded %d tools (%d available) from %s",
                len(descriptors),
                sum(1 for d in descriptors if d.is_available),
                self.registry_path,
            )
            return self._tools

    def resolve(self, request: ToolRequest) -> Tuple[Optional[ToolDescriptor], int]:
        """Return the best descriptor for *request* and its score, or ``(None, 0)``."""
        return select_best(self._tools, request)

    # ------------------------------------------------------------------
    def _load_document(self) -> List[ToolConfiguration]:
        """Read the registry; entries that fail validation are logged and skipped."""
        path = self.registry_path
        if not os.path.isfile(path):
            raise ConfigurationError(f"Registry file '{path}' does not exist.")
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.load(f, Loader=RegistryLoader)
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"Could not read '{path}': {exc}") from exc

        if raw is None:
            return []
        entries = raw.get("tools") if isinstance(raw, dict) else raw
        if entries is None:
            return []
        if not isinstance(entries, list):
            raise ConfigurationError(f"Invalid registry '{path}': expected a list of tools.")

        configurations: List[ToolConfiguration] = []
        for index, entry in enumerate(entries):
            try:
                configurations.append(ToolConfiguration.model_validate(entry))
            except ValidationError as exc:
                logger.warning("Skipping invalid tool entry #%d in %s: %s", index + 1, path, exc)
        return configurations

    def _bind(
        self, configuration: ToolConfiguration, cancel: CancellationToken | None
    ) -> ToolDescriptor:
        if not configuration.enabled:
            return ToolDescriptor(configuration, None, ToolAvailability.unavailable("disabled"))

        provider = next((p for p in self.providers if p.can_handle(configuration)), None)
        if provider is None:
            return ToolDescriptor(configuration, None, ToolAvailability.unavailable("no provider"))

        try:
            availability = provider.get_availability(configuration, cancel)
        except OperationCancelled:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Could not check availability of %s: %s", configuration.name, exc)
            availability = ToolAvailability.unavailable(str(exc))
        return ToolDescriptor(configuration, provider, availability)
