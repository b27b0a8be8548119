"""
Declarative binding metadata.

Binding metadata is a plain ``BindingSpec`` value. It can be attached to a
class ahead of registration:

    @bind(tags={"group": "cache"}, scope=BindingScope.SINGLETON)
    class CacheWarmer:
        ...

or supplied by the caller at registration time:

    create_binding_from_class(CacheWarmer, BindingSpec(tags={"group": "cache"}))

Both paths go through ``create_binding_from_class``, so equal metadata
always produces equal bindings.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Mapping, Optional, Type, TypeVar

from ..core.keys import BindingKey, ContextTags
from .binding import Binding, BindingScope

T = TypeVar("T")

BINDING_SPEC_ATTRIBUTE = "__binding_spec__"


@dataclass(frozen=True)
class BindingSpec:
    """
    Metadata describing how a class should be bound.

    Attributes:
        tags: Tags to apply; ``name``/``namespace`` tags also drive the key
        scope: Binding scope, None for the registration default
        key: Explicit key, overriding namespace and name
        namespace: Key namespace
        name: Key name, defaulting to the class name
    """
    tags: Mapping[str, Any] = field(default_factory=dict)
    scope: Optional[BindingScope] = None
    key: Optional[str] = None
    namespace: Optional[str] = None
    name: Optional[str] = None

    def merge(self, other: Optional["BindingSpec"]) -> "BindingSpec":
        """Overlay ``other`` on this spec; tags are merged, other fields replaced when set."""
        if other is None:
            return self
        tags: Dict[str, Any] = dict(self.tags)
        tags.update(other.tags)
        return replace(
            self,
            tags=tags,
            scope=other.scope if other.scope is not None else self.scope,
            key=other.key if other.key is not None else self.key,
            namespace=other.namespace if other.namespace is not None else self.namespace,
            name=other.name if other.name is not None else self.name,
        )


def bind(tags: Optional[Mapping[str, Any]] = None,
         scope: Optional[BindingScope] = None,
         key: Optional[str] = None,
         namespace: Optional[str] = None,
         name: Optional[str] = None) -> Callable[[Type[T]], Type[T]]:
    """
    Class decorator attaching a ``BindingSpec``.

    Stacked decorators merge; on conflicts the one nearest the class wins.
    """
    spec = BindingSpec(tags=dict(tags or {}), scope=scope, key=key,
                       namespace=namespace, name=name)

    def decorator(cls: Type[T]) -> Type[T]:
        existing = cls.__dict__.get(BINDING_SPEC_ATTRIBUTE)
        setattr(cls, BINDING_SPEC_ATTRIBUTE, spec.merge(existing) if existing else spec)
        return cls

    return decorator


def get_binding_spec(cls: Type[Any]) -> Optional[BindingSpec]:
    """
    Read the metadata a class declares for itself.

    Only the class's own ``__binding_spec__`` counts, so subclasses do not
    silently inherit a parent's key or tags. A ``binding_spec()`` classmethod
    is honoured as well.
    """
    spec = cls.__dict__.get(BINDING_SPEC_ATTRIBUTE)
    if spec is not None:
        return spec  # type: ignore[no-any-return]
    factory = getattr(cls, "binding_spec", None)
    if callable(factory):
        return factory()  # type: ignore[no-any-return]
    return None


def create_binding_from_class(cls: Type[Any],
                              spec: Optional[BindingSpec] = None,
                              default_namespace: Optional[str] = None,
                              default_scope: Optional[BindingScope] = None) -> Binding:
    """
    Build a class binding from declared and caller supplied metadata.

    Args:
        cls: Class to bind
        spec: Caller supplied metadata, overriding what the class declares
        default_namespace: Namespace used when neither source names one
        default_scope: Scope used when neither source names one

    Returns:
        An unregistered binding; add it to a context with ``Context.add``
    """
    merged = (get_binding_spec(cls) or BindingSpec()).merge(spec)
    tags: Dict[str, Any] = dict(merged.tags)

    namespace = merged.namespace or tags.get(ContextTags.NAMESPACE) or default_namespace
    name = merged.name or tags.get(ContextTags.NAME) or cls.__name__
    key = merged.key or tags.get(ContextTags.KEY) or BindingKey.build(namespace, name)

    tags.pop(ContextTags.KEY, None)
    tags[ContextTags.NAME] = name
    if namespace:
        tags[ContextTags.NAMESPACE] = namespace

    binding = Binding(key).to_class(cls).tag(tags)
    scope = merged.scope or default_scope
    if scope is not None:
        binding.in_scope(scope)
    return binding
