"""
Binding keys and the fixed vocabulary of well-known keys and tags.

Keys are plain strings, optionally namespaced with dots
(``servers.RestServer``). A key may carry a property path after ``#`` to
select a nested value of the bound object (``config#db.host``).
"""

from typing import Any, Mapping, Optional, Tuple

PROPERTY_SEPARATOR = "#"
NAMESPACE_SEPARATOR = "."


class BindingKey:
    """Helpers for building and parsing binding keys."""

    @staticmethod
    def validate(key: str) -> str:
        if not isinstance(key, str) or not key:
            raise ValueError(f"Binding key must be a non-empty string, got {key!r}")
        if PROPERTY_SEPARATOR in key:
            raise ValueError(
                f"Binding key '{key}' cannot contain '{PROPERTY_SEPARATOR}'")
        return key

    @staticmethod
    def parse(key: str) -> Tuple[str, Optional[str]]:
        """Split ``key#path`` into the binding key and the property path."""
        if not isinstance(key, str) or not key:
            raise ValueError(f"Binding key must be a non-empty string, got {key!r}")
        base, sep, path = key.partition(PROPERTY_SEPARATOR)
        return base, (path if sep and path else None)

    @staticmethod
    def build(namespace: Optional[str], name: str) -> str:
        return f"{namespace}{NAMESPACE_SEPARATOR}{name}" if namespace else name

    @staticmethod
    def create(key: str, path: Optional[str] = None) -> str:
        BindingKey.validate(key)
        return f"{key}{PROPERTY_SEPARATOR}{path}" if path else key


def get_deep_property(value: Any, path: Optional[str]) -> Any:
    """Walk a dotted path through mappings and attributes, ``None`` if absent."""
    if not path:
        return value
    current = value
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(part)
        else:
            current = getattr(current, part, None)
    return current


class CoreBindings:
    """Well-known binding keys and key namespaces."""

    APPLICATION_INSTANCE = "application.instance"
    APPLICATION_CONFIG = "application.config"

    LIFE_CYCLE_OBSERVER_REGISTRY = "lifeCycleObserver.registry"
    LIFE_CYCLE_OBSERVER_OPTIONS = "lifeCycleObserver.options"

    COMPONENTS = "components"
    SERVERS = "servers"
    LIFE_CYCLE_OBSERVERS = "lifeCycleObservers"


class CoreTags:
    """Tags driving lifecycle discovery."""

    LIFE_CYCLE_OBSERVER = "lifeCycleObserver"
    LIFE_CYCLE_OBSERVER_GROUP = "lifeCycleObserverGroup"
    SERVER = "server"
    COMPONENT = "component"


class ContextTags:
    """Tags describing how a binding was created."""

    NAME = "name"
    NAMESPACE = "namespace"
    TYPE = "type"
    KEY = "key"
