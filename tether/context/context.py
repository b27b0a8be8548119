"""
Binding registry with parent chaining.

A context owns its bindings exclusively and refers to its parent through a
weak reference: lookups fall through to the parent chain, the nearest
binding for a key wins, and a child never keeps its parent alive.
"""

import fnmatch
import logging
import uuid
import weakref
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ..core.errors import (
    BindingLockedException, BindingNotFoundException, DuplicateBindingException
)
from ..core.keys import BindingKey, get_deep_property
from .binding import Binding, BindingScope, TagFilter, filter_by_tag
from .resolver import ResolutionSession

logger = logging.getLogger(__name__)

BindingFilter = Callable[[Binding], bool]


class Context:
    """
    A registry of bindings, optionally chained to a parent context.

    Supports registration (``bind``/``rebind``/``add``), lookup through the
    parent chain, tag based discovery and synchronous or asynchronous
    resolution of bound values.
    """

    def __init__(self, parent: Optional["Context"] = None, name: Optional[str] = None) -> None:
        self._name = name or f"{type(self).__name__}-{uuid.uuid4().hex[:8]}"
        self._parent_ref: Optional["weakref.ReferenceType[Context]"] = (
            weakref.ref(parent) if parent is not None else None)
        self._registry: Dict[str, Binding] = {}

    @property
    def name(self) -> str:
        return self._name

    @property
    def parent(self) -> Optional["Context"]:
        return self._parent_ref() if self._parent_ref is not None else None

    def _chain(self) -> List["Context"]:
        chain: List[Context] = []
        ctx: Optional[Context] = self
        while ctx is not None:
            chain.append(ctx)
            ctx = ctx.parent
        return chain

    # Registration

    def bind(self, key: str) -> Binding:
        """
        Create a binding for ``key`` in this context.

        Raises:
            DuplicateBindingException: If ``key`` is already bound locally
        """
        binding = Binding(key)
        self.add(binding)
        return binding

    def rebind(self, key: str) -> Binding:
        """Replace any local binding for ``key`` with a fresh one."""
        binding = Binding(key)
        self.add(binding, replace=True)
        return binding

    def add(self, binding: Binding, replace: bool = False) -> "Context":
        """
        Register a fully formed binding.

        Args:
            binding: Binding to register
            replace: Replace an existing local binding with the same key

        Raises:
            DuplicateBindingException: If the key is bound and ``replace`` is False
            BindingLockedException: If the existing binding is locked
        """
        key = binding.key
        existing = self._registry.get(key)
        if existing is not None:
            if not replace:
                raise DuplicateBindingException(key, self._name)
            if existing.is_locked:
                raise BindingLockedException(key)
            del self._registry[key]
            logger.debug(f"Rebinding '{key}' in context {self._name}")
        self._registry[key] = binding
        return self

    def unbind(self, key: str) -> bool:
        """Remove a local binding; returns False when nothing was bound."""
        binding = self._registry.get(key)
        if binding is None:
            return False
        if binding.is_locked:
            raise BindingLockedException(key)
        del self._registry[key]
        binding.refresh()
        return True

    # Lookup

    def contains(self, key: str) -> bool:
        """Check the local registry only."""
        return key in self._registry

    def is_bound(self, key: str) -> bool:
        """Check this context and its ancestors."""
        return self.get_owner_context(key) is not None

    def get_owner_context(self, key: str) -> Optional["Context"]:
        for ctx in self._chain():
            if key in ctx._registry:
                return ctx
        return None

    def get_binding(self, key: str, optional: bool = False) -> Optional[Binding]:
        """Find the nearest binding for ``key``."""
        base_key, _ = BindingKey.parse(key)
        owner = self.get_owner_context(base_key)
        if owner is not None:
            return owner._registry[base_key]
        if optional:
            return None
        raise BindingNotFoundException(base_key, self._name)

    def find(self, pattern: Union[str, BindingFilter, None] = None) -> List[Binding]:
        """
        Find bindings visible from this context.

        Args:
            pattern: Glob pattern over keys (``servers.*``), a predicate over
                bindings or None for everything

        Returns:
            Bindings from the root ancestor down to this context, each context
            in registration order, with the nearest binding winning per key
        """
        if pattern is None:
            matcher: BindingFilter = lambda binding: True
        elif isinstance(pattern, str):
            glob = pattern
            matcher = lambda binding: fnmatch.fnmatchcase(binding.key, glob)
        else:
            matcher = pattern

        seen = set()
        per_context: List[List[Binding]] = []
        for ctx in self._chain():
            found = []
            for key, binding in ctx._registry.items():
                if key in seen:
                    continue
                seen.add(key)
                if matcher(binding):
                    found.append(binding)
            per_context.append(found)

        result: List[Binding] = []
        for found in reversed(per_context):
            result.extend(found)
        return result

    def find_by_tag(self, tag_filter: TagFilter) -> List[Binding]:
        """Find visible bindings whose tags match ``tag_filter``."""
        return self.find(filter_by_tag(tag_filter))

    # Resolution

    def _resolution_target(self, key: str, optional: bool,
                           session: Optional[ResolutionSession]) -> Tuple[Optional[Binding], Optional["Context"], Optional[str]]:
        base_key, path = BindingKey.parse(key)
        owner = self.get_owner_context(base_key)
        if owner is None:
            if optional:
                return None, None, path
            raise BindingNotFoundException(
                base_key, self._name,
                requested_by=session.current_key if session is not None else None)
        binding = owner._registry[base_key]
        resolution_ctx = owner if binding.scope is BindingScope.SINGLETON else self
        return binding, resolution_ctx, path

    async def get(self, key: str, optional: bool = False,
                  session: Optional[ResolutionSession] = None) -> Any:
        """
        Resolve the value bound to ``key``.

        Args:
            key: Binding key, optionally followed by ``#property.path``
            optional: Return None instead of raising when the key is unbound
            session: Resolution path of the caller, used for cycle detection

        Raises:
            BindingNotFoundException: If the key is unbound and not optional
            CircularDependencyException: If resolution loops back to a key
        """
        binding, resolution_ctx, path = self._resolution_target(key, optional, session)
        if binding is None:
            return None
        value = await binding.get_value(resolution_ctx, session)  # type: ignore[arg-type]
        return get_deep_property(value, path)

    def get_sync(self, key: str, optional: bool = False,
                 session: Optional[ResolutionSession] = None) -> Any:
        """
        Resolve the value bound to ``key`` without suspending.

        Raises:
            AsyncResolutionException: If any step of the resolution is asynchronous
        """
        binding, resolution_ctx, path = self._resolution_target(key, optional, session)
        if binding is None:
            return None
        value = binding.get_value_sync(resolution_ctx, session)  # type: ignore[arg-type]
        return get_deep_property(value, path)

    # Introspection and teardown

    def inspect(self) -> Dict[str, Any]:
        """Describe this context, its bindings and its ancestors as plain data."""
        result: Dict[str, Any] = {
            "name": self._name,
            "bindings": {key: binding.to_dict() for key, binding in self._registry.items()},
        }
        parent = self.parent
        if parent is not None:
            result["parent"] = parent.inspect()
        return result

    def close(self) -> None:
        """Drop every local binding and its cached values, locks included."""
        for binding in self._registry.values():
            binding.refresh()
        self._registry.clear()
        logger.debug(f"Closed context {self._name}")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._name!r} bindings={len(self._registry)}>"
