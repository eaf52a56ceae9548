"""Cooperative cancellation shared by model calls, tool execution and registry reloads."""

import threading


class OperationCancelled(RuntimeError):
    """Raised when work stops because its cancellation token was triggered."""


class CancellationToken:
    """A one-shot signal, checked at loop boundaries by long-running operations."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """Return True once :meth:`cancel` has been called."""
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Block up to *timeout* seconds; return True if cancelled meanwhile."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        """Raise :class:`OperationCancelled` if cancellation was requested."""
        if self._event.is_set():
            raise OperationCancelled("Operation cancelled.")


def check_cancelled(token: CancellationToken | None) -> None:
    """Raise :class:`OperationCancelled` if *token* is set; ``None`` never cancels."""
    if token is not None:
        token.raise_if_cancelled()
