"""
Exception hierarchy for binding resolution and lifecycle orchestration.

Resolution errors always surface to the caller of ``get``/``get_sync``.
Lifecycle errors carry the key of the participant that failed so that
callers can tell which observer or server is misbehaving.
"""

from typing import Any, List, Optional, Sequence, Tuple


class TetherException(Exception):
    """Base class for all errors raised by the container and application."""
    pass


class BindingNotFoundException(TetherException):
    """Raised when a key is not bound anywhere in the context chain."""

    def __init__(self, key: str, context_name: str = "",
                 requested_by: Optional[str] = None) -> None:
        self.key = key
        self.context_name = context_name
        self.requested_by = requested_by
        message = f"The key '{key}' is not bound to any value in context {context_name}"
        if requested_by:
            message += f" (requested by '{requested_by}')"
        super().__init__(message)


class DuplicateBindingException(TetherException):
    """Raised when a key is bound twice without an explicit rebind."""

    def __init__(self, key: str, context_name: str = "") -> None:
        self.key = key
        super().__init__(
            f"The key '{key}' is already bound in context {context_name}; "
            f"use rebind() to replace it")


class BindingLockedException(TetherException):
    """Raised when a locked binding is replaced or removed."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Cannot rebind or unbind locked key '{key}'")


class BindingFrozenException(TetherException):
    """Raised when a binding is mutated after its first resolution."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(
            f"Binding '{key}' has already been resolved; its source, tags "
            f"and scope can no longer change")


class ResolutionException(TetherException):
    """Raised when a binding value cannot be produced."""
    pass


class CircularDependencyException(ResolutionException):
    """Raised when resolving a key transitively depends on itself."""

    def __init__(self, path: Sequence[str]) -> None:
        self.path = list(path)
        super().__init__(
            f"Circular dependency detected: {' -> '.join(self.path)}")


class AsyncResolutionException(ResolutionException):
    """Raised by synchronous resolution when a step is asynchronous."""

    def __init__(self, key: str, reason: str = "") -> None:
        self.key = key
        message = f"Cannot resolve '{key}' synchronously"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class LifecycleStateException(TetherException):
    """Raised when start/stop/registration happens in an invalid state."""
    pass


class ParticipantStartException(TetherException):
    """
    Raised when a lifecycle participant fails to start.

    Attributes:
        key: Key of the first participant whose start hook failed
        cause: The exception raised by that hook
        rollback_failures: (key, exception) pairs collected while stopping
            participants that had already started
    """

    def __init__(self, key: str, cause: BaseException,
                 rollback_failures: Optional[List[Tuple[str, BaseException]]] = None) -> None:
        self.key = key
        self.cause = cause
        self.rollback_failures = rollback_failures or []
        message = f"Failed to start life cycle observer '{key}': {cause}"
        if self.rollback_failures:
            keys = ", ".join(k for k, _ in self.rollback_failures)
            message += f" (rollback also failed for: {keys})"
        super().__init__(message)


class ParticipantStopException(TetherException):
    """
    Raised after all participants were asked to stop and some failed.

    Attributes:
        failures: (key, exception) pairs in the order they were stopped
    """

    def __init__(self, failures: List[Tuple[str, BaseException]]) -> None:
        self.failures = failures
        self.key = failures[0][0] if failures else ""
        details = "; ".join(f"'{k}': {e}" for k, e in failures)
        super().__init__(f"Failed to stop life cycle observers: {details}")

    @property
    def causes(self) -> List[Any]:
        return [e for _, e in self.failures]
