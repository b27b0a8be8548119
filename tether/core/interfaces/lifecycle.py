"""
Lifecycle capability contracts.

Participants are structurally typed: anything exposing ``start``/``stop``
(and optionally ``init``) can take part in an application start/stop cycle.
The protocols below are runtime checkable so the orchestrator can test for
a capability instead of requiring a particular base class. The base classes
are conveniences for implementers who prefer explicit inheritance.
"""

from typing import (
    Any, Awaitable, Dict, List, Mapping, Optional, Protocol, Sequence,
    Type, Union, runtime_checkable
)

HookResult = Union[None, Awaitable[None]]


@runtime_checkable
class IStartable(Protocol):
    """Something that can be started; the hook may be sync or async."""

    def start(self) -> HookResult: ...


@runtime_checkable
class IStoppable(Protocol):
    """Something that can be stopped; the hook may be sync or async."""

    def stop(self) -> HookResult: ...


@runtime_checkable
class IInitializable(Protocol):
    """Something with a one-time ``init`` hook run before the first start."""

    def init(self) -> HookResult: ...


@runtime_checkable
class IServer(IStartable, IStoppable, Protocol):
    """A lifecycle participant owning a listening resource."""

    listening: bool


def has_hook(target: Any, hook: str) -> bool:
    """Check whether ``target`` exposes a callable lifecycle hook."""
    protocol = _HOOK_PROTOCOLS.get(hook)
    if protocol is not None and not isinstance(target, protocol):
        return False
    return callable(getattr(target, hook, None))


def is_life_cycle_observer(target: Any) -> bool:
    """A participant needs at least one of ``start``/``stop``."""
    return has_hook(target, "start") or has_hook(target, "stop")


_HOOK_PROTOCOLS: Dict[str, Any] = {
    "init": IInitializable,
    "start": IStartable,
    "stop": IStoppable,
}


class LifeCycleObserver:
    """Optional base class for observers; every hook defaults to a no-op."""

    def init(self) -> HookResult:
        return None

    def start(self) -> HookResult:
        return None

    def stop(self) -> HookResult:
        return None


class Component:
    """
    Optional base class for components.

    A component is a registration-time bundle. The application reads the
    attributes below once when the component is mounted; only the bindings
    they contribute persist afterwards.

    Attributes:
        servers: Server classes keyed by server name
        life_cycle_observers: Observer classes
        classes: Classes keyed by binding key
        providers: Provider classes keyed by binding key
        bindings: Fully formed bindings to add as-is
    """

    servers: Optional[Mapping[str, Type[Any]]] = None
    life_cycle_observers: Optional[Sequence[Type[Any]]] = None
    classes: Optional[Mapping[str, Type[Any]]] = None
    providers: Optional[Mapping[str, Type[Any]]] = None
    bindings: Optional[List[Any]] = None
