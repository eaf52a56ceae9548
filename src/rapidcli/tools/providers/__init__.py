"""
Tool providers for RapidCLI.

A provider knows how to run one family of registry tools (external command line programs, in-process
handlers, ...).  Providers are registered with :func:`register_provider`; the registry binds every
configured tool to the first registered provider whose :meth:`BaseToolProvider.can_handle` accepts
it, once, at load time.
"""

import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Callable,
    Dict,
    List,
    Type,
)

from rapidcli.config import Settings
from rapidcli.core.cancellation import CancellationToken
from rapidcli.tools.models import (
    ToolAvailability,
    ToolConfiguration,
    ToolExecutionResult,
    ToolInvocationContext,
)

logger = logging.getLogger(__name__)


class ToolExecutionError(RuntimeError):
    """Raised by a provider when a tool cannot be started at all."""


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_PROVIDER_REGISTRY: Dict[str, Type["BaseToolProvider"]] = {}


def register_provider(name: str) -> Callable:
    """Decorator to register a provider class under *name*."""

    def wrapper(cls: Type["BaseToolProvider"]) -> Type["BaseToolProvider"]:
        if name in _PROVIDER_REGISTRY:
            raise ValueError(f"Tool provider '{name}' is already registered.")
        logger.debug("Registering tool provider '%s'", name)
        _PROVIDER_REGISTRY[name] = cls
        return cls

    return wrapper


def default_providers(settings: Settings | None = None) -> List["BaseToolProvider"]:
    """Instantiate every built-in provider, in registration order."""
    # Importing the modules runs their @register_provider decorators
    from rapidcli.tools.providers import (  # pylint: disable=import-outside-toplevel,unused-import
        cli,
        yaml_json,
    )

    settings = settings or Settings()
    return [cls.from_settings(settings) for cls in _PROVIDER_REGISTRY.values()]


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseToolProvider(ABC):
    """Capability contract shared by every tool provider."""

    name: str = "base"

    @classmethod
    def from_settings(cls, settings: Settings) -> "BaseToolProvider":  # pylint: disable=unused-argument
        """Build the provider from application settings."""
        return cls()

    @abstractmethod
    def can_handle(self, configuration: ToolConfiguration) -> bool:
        """Return True if this provider can run *configuration*."""

    @abstractmethod
    def get_availability(
        self, configuration: ToolConfiguration, cancel: CancellationToken | None = None
    ) -> ToolAvailability:
        """Probe whether the tool can run on this machine."""

    @abstractmethod
    def execute(
        self,
        configuration: ToolConfiguration,
        context: ToolInvocationContext,
        cancel: CancellationToken | None = None,
    ) -> ToolExecutionResult:
        """Run the tool and report its outcome."""
