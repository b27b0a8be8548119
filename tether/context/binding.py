"""
Bindings: registry entries mapping a key to a value recipe, a scope and tags.

A ``Binding`` doubles as the fluent builder returned by ``Context.bind()``:

    ctx.bind("servers.rest").to_class(RestServer).tag("server").in_scope(
        BindingScope.SINGLETON)

Caching scopes share the first in-flight resolution so that concurrent
``get`` calls for the same singleton observe exactly one construction.
"""

import asyncio
import inspect
import logging
import weakref
from enum import Enum
from types import MappingProxyType
from typing import (
    TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Type, Union
)

from ..core.errors import (
    AsyncResolutionException, BindingFrozenException, CircularDependencyException,
    ResolutionException
)
from ..core.keys import BindingKey
from .resolver import (
    ResolutionSession, ensure_sync, instantiate_class, instantiate_class_sync,
    invoke_factory, invoke_factory_sync
)

if TYPE_CHECKING:
    from .context import Context

logger = logging.getLogger(__name__)


class BindingScope(Enum):
    """Cardinality of a binding's resolved value."""
    TRANSIENT = "transient"  # New value for every resolution
    SINGLETON = "singleton"  # One value, resolved in the owning context
    CONTEXT = "context"      # One value per requesting context


class BindingType(Enum):
    """How a binding produces its value."""
    CONSTANT = "constant"
    CLASS = "class"
    FACTORY = "factory"
    PROVIDER = "provider"
    ALIAS = "alias"


class _AnyTagValue:
    def __repr__(self) -> str:
        return "ANY_TAG_VALUE"


ANY_TAG_VALUE: Any = _AnyTagValue()

BindingTemplate = Callable[["Binding"], None]
TagFilter = Union[str, Mapping[str, Any], Callable[["Binding"], bool]]

# In-flight resolutions: the key each one produces and the one a task awaits
_in_flight_keys: "weakref.WeakKeyDictionary[asyncio.Future[Any], str]" = weakref.WeakKeyDictionary()
_awaiting: "weakref.WeakKeyDictionary[asyncio.Future[Any], asyncio.Future[Any]]" = \
    weakref.WeakKeyDictionary()


def _wait_cycle(pending: "asyncio.Future[Any]") -> Optional[List[str]]:
    """
    Follow what ``pending`` waits for; return the keys on the way if the
    chain leads back to the current task.
    """
    current = asyncio.current_task()
    if current is None:
        return None
    keys: List[str] = []
    seen = set()
    waiting: Optional["asyncio.Future[Any]"] = pending
    while waiting is not None and id(waiting) not in seen:
        seen.add(id(waiting))
        keys.append(_in_flight_keys.get(waiting, "<unknown>"))
        if waiting is current:
            return keys
        waiting = _awaiting.get(waiting)
    return None


def filter_by_tag(tag_filter: TagFilter) -> Callable[["Binding"], bool]:
    """
    Build a binding predicate from a tag filter.

    Args:
        tag_filter: A tag name (matches when present), a mapping of tag names
            to expected values (``ANY_TAG_VALUE`` matches any value) or a
            predicate taking a binding

    Returns:
        Predicate over bindings
    """
    if isinstance(tag_filter, str):
        name = tag_filter
        return lambda binding: name in binding.tag_map

    if isinstance(tag_filter, Mapping):
        expected = dict(tag_filter)

        def matches(binding: "Binding") -> bool:
            tags = binding.tag_map
            for tag_name, value in expected.items():
                if tag_name not in tags:
                    return False
                if value is not ANY_TAG_VALUE and tags[tag_name] != value:
                    return False
            return True

        return matches

    if callable(tag_filter):
        return tag_filter

    raise TypeError(f"Unsupported tag filter: {tag_filter!r}")


class Binding:
    """
    A named registry entry.

    The key never changes. Source, tags and scope may be changed until the
    binding is resolved for the first time; afterwards they are frozen.
    """

    def __init__(self, key: str, is_locked: bool = False) -> None:
        self._key = BindingKey.validate(key)
        self.is_locked = is_locked
        self._scope = BindingScope.TRANSIENT
        self._tag_map: Dict[str, Any] = {}
        self._type: Optional[BindingType] = None
        self._source: Any = None
        self._resolved = False
        # Cached values and in-flight resolutions, keyed by resolution context
        self._cache: "weakref.WeakKeyDictionary[Context, Any]" = weakref.WeakKeyDictionary()
        self._pending: "weakref.WeakKeyDictionary[Context, asyncio.Future[Any]]" = \
            weakref.WeakKeyDictionary()

    @property
    def key(self) -> str:
        return self._key

    @property
    def scope(self) -> BindingScope:
        return self._scope

    @property
    def type(self) -> Optional[BindingType]:
        return self._type

    @property
    def source(self) -> Any:
        return self._source

    @property
    def tag_map(self) -> Mapping[str, Any]:
        return MappingProxyType(self._tag_map)

    @property
    def tag_names(self) -> List[str]:
        return list(self._tag_map)

    @property
    def value_constructor(self) -> Optional[Type[Any]]:
        """The class behind a class or provider binding."""
        if self._type in (BindingType.CLASS, BindingType.PROVIDER):
            return self._source  # type: ignore[no-any-return]
        return None

    @property
    def is_resolved(self) -> bool:
        return self._resolved

    def _ensure_mutable(self) -> None:
        if self._resolved:
            raise BindingFrozenException(self._key)

    def tag(self, *tags: Union[str, Mapping[str, Any]], **named_tags: Any) -> "Binding":
        """
        Add tags.

        A bare tag name is stored with itself as value; mapping entries and
        keyword arguments keep their values.
        """
        self._ensure_mutable()
        for tag in tags:
            if isinstance(tag, str):
                self._tag_map[tag] = tag
            elif isinstance(tag, Mapping):
                self._tag_map.update(tag)
            else:
                raise TypeError(f"Tag must be a string or a mapping, got {tag!r}")
        self._tag_map.update(named_tags)
        return self

    def in_scope(self, scope: BindingScope) -> "Binding":
        self._ensure_mutable()
        self._scope = BindingScope(scope)
        return self

    def _set_source(self, binding_type: BindingType, source: Any) -> "Binding":
        self._ensure_mutable()
        self._type = binding_type
        self._source = source
        self.refresh()
        return self

    def to(self, value: Any) -> "Binding":
        """Bind to a constant value."""
        return self._set_source(BindingType.CONSTANT, value)

    to_value = to

    def to_class(self, cls: Type[Any]) -> "Binding":
        if not inspect.isclass(cls):
            raise TypeError(f"to_class() expects a class, got {cls!r}")
        return self._set_source(BindingType.CLASS, cls)

    def to_factory(self, factory: Callable[..., Any]) -> "Binding":
        """Bind to a function whose (possibly awaitable) result is the value."""
        if not callable(factory):
            raise TypeError(f"to_factory() expects a callable, got {factory!r}")
        return self._set_source(BindingType.FACTORY, factory)

    def to_provider(self, provider_cls: Type[Any]) -> "Binding":
        """Bind to a class whose instance produces the value through ``value()``."""
        if not inspect.isclass(provider_cls) or not callable(getattr(provider_cls, "value", None)):
            raise TypeError(f"to_provider() expects a class with a value() method, got {provider_cls!r}")
        return self._set_source(BindingType.PROVIDER, provider_cls)

    def to_alias(self, key: str) -> "Binding":
        """Resolve another key (optionally with a ``#path``) instead."""
        BindingKey.parse(key)
        return self._set_source(BindingType.ALIAS, key)

    def apply(self, *templates: BindingTemplate) -> "Binding":
        for template in templates:
            template(self)
        return self

    def lock(self) -> "Binding":
        self.is_locked = True
        return self

    def unlock(self) -> "Binding":
        self.is_locked = False
        return self

    def refresh(self, ctx: Optional["Context"] = None) -> None:
        """Drop cached values, for one resolution context or all of them."""
        if ctx is None:
            self._cache.clear()
        else:
            self._cache.pop(ctx, None)

    async def get_value(self, ctx: "Context",
                        session: Optional[ResolutionSession] = None) -> Any:
        """
        Resolve the value in ``ctx``.

        Args:
            ctx: Resolution context; the owning context for singletons, the
                requesting context otherwise
            session: Chain of keys already being resolved on this call path

        Raises:
            CircularDependencyException: If this key is already on the path,
                or an in-flight resolution it would wait for waits on this one
            ResolutionException: If the binding has no value configured
        """
        if self._type is BindingType.CONSTANT:
            self._resolved = True
            return self._source

        caller_path = session.path if session is not None else ()
        session = ResolutionSession.fork(session, self._key)
        if self._scope is BindingScope.TRANSIENT:
            value = await self._produce(ctx, session)
            self._resolved = True
            return value

        if ctx in self._cache:
            return self._cache[ctx]

        pending = self._pending.get(ctx)
        if pending is None:
            logger.debug(f"Resolving {self._scope.value} binding '{self._key}'")
            pending = asyncio.ensure_future(self._produce_and_cache(ctx, session))
            self._pending[ctx] = pending
            _in_flight_keys[pending] = self._key
        else:
            cycle = _wait_cycle(pending)
            if cycle is not None:
                raise CircularDependencyException(caller_path + tuple(cycle))

        task = asyncio.current_task()
        if task is not None:
            _awaiting[task] = pending
        try:
            return await asyncio.shield(pending)
        finally:
            if task is not None:
                _awaiting.pop(task, None)

    def get_value_sync(self, ctx: "Context",
                       session: Optional[ResolutionSession] = None) -> Any:
        """Synchronous twin of ``get_value``; never blocks on async steps."""
        if self._type is BindingType.CONSTANT:
            self._resolved = True
            return self._source

        session = ResolutionSession.fork(session, self._key)
        if self._scope is BindingScope.TRANSIENT:
            value = self._produce_sync(ctx, session)
            self._resolved = True
            return value

        if ctx in self._cache:
            return self._cache[ctx]
        if ctx in self._pending:
            raise AsyncResolutionException(
                self._key, "an asynchronous resolution is already in progress")

        value = self._produce_sync(ctx, session)
        self._cache[ctx] = value
        self._resolved = True
        return value

    async def _produce_and_cache(self, ctx: "Context", session: ResolutionSession) -> Any:
        try:
            value = await self._produce(ctx, session)
            self._cache[ctx] = value
            self._resolved = True
            return value
        finally:
            self._pending.pop(ctx, None)

    async def _produce(self, ctx: "Context", session: ResolutionSession) -> Any:
        if self._type is BindingType.CLASS:
            return await instantiate_class(self._source, ctx, session)
        if self._type is BindingType.FACTORY:
            return await invoke_factory(self._source, ctx, session)
        if self._type is BindingType.PROVIDER:
            provider = await instantiate_class(self._source, ctx, session)
            value = provider.value()
            if inspect.isawaitable(value):
                value = await value
            return value
        if self._type is BindingType.ALIAS:
            return await ctx.get(self._source, session=session)
        raise ResolutionException(f"No value was configured for binding '{self._key}'")

    def _produce_sync(self, ctx: "Context", session: ResolutionSession) -> Any:
        if self._type is BindingType.CLASS:
            return instantiate_class_sync(self._source, ctx, session)
        if self._type is BindingType.FACTORY:
            return invoke_factory_sync(self._source, ctx, session)
        if self._type is BindingType.PROVIDER:
            provider = instantiate_class_sync(self._source, ctx, session)
            return ensure_sync(provider.value(), session, "the provider returned an awaitable")
        if self._type is BindingType.ALIAS:
            return ctx.get_sync(self._source, session=session)
        raise ResolutionException(f"No value was configured for binding '{self._key}'")

    def to_dict(self) -> Dict[str, Any]:
        """Describe the binding as plain data."""
        result: Dict[str, Any] = {
            "key": self._key,
            "scope": self._scope.value,
            "type": self._type.value if self._type else None,
            "tags": dict(self._tag_map),
            "is_locked": self.is_locked,
        }
        constructor = self.value_constructor
        if constructor is not None:
            result["value_constructor"] = constructor.__name__
        if self._type is BindingType.ALIAS:
            result["alias"] = self._source
        return result

    def __repr__(self) -> str:
        return f"<Binding {self._key!r} {self._scope.value} {self._type.value if self._type else 'unset'}>"
