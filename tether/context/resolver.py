"""
Dependency resolution for class constructors, factories and properties.

Dependencies are declared with ``inject()`` / ``inject_tag()`` markers,
either inside ``typing.Annotated`` hints or as parameter defaults:

    class Greeter:
        prefix: Annotated[str, inject("greeting.prefix")]

        def __init__(self, name: Annotated[str, inject("user.name")],
                     clock=inject("clock", optional=True)) -> None:
            ...

Every dependency is resolved through the requesting context, so parent
lookup, scopes and cycle detection apply uniformly.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING, Annotated, Any, Callable, Dict, List, Optional, Tuple, Type,
    get_args, get_origin, get_type_hints
)

from ..core.errors import (
    AsyncResolutionException, CircularDependencyException, ResolutionException
)
from ..core.keys import BindingKey

if TYPE_CHECKING:
    from .context import Context

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Injection:
    """
    A declared dependency.

    Exactly one of ``key`` and ``tag_filter`` is set. A key injection resolves
    a single binding; a tag injection resolves the values of every binding
    matching the filter, in discovery order.
    """
    key: Optional[str] = None
    tag_filter: Any = None
    optional: bool = False

    def describe(self) -> str:
        if self.key is not None:
            return f"inject('{self.key}')"
        return f"inject_tag({self.tag_filter!r})"


def inject(key: str, *, optional: bool = False) -> Any:
    """Declare a dependency on the value bound to ``key``."""
    BindingKey.parse(key)
    return Injection(key=key, optional=optional)


def inject_tag(tag_filter: Any) -> Any:
    """Declare a dependency on the values of all bindings matching a tag filter."""
    if tag_filter is None:
        raise ValueError("inject_tag() requires a tag name, mapping or predicate")
    return Injection(tag_filter=tag_filter)


class ResolutionSession:
    """
    The chain of keys currently being resolved on one call path.

    Sessions are immutable; each nested resolution forks a new one so that
    concurrent resolutions never share a path.
    """

    __slots__ = ("_path",)

    def __init__(self, path: Tuple[str, ...] = ()) -> None:
        self._path = path

    @classmethod
    def fork(cls, session: Optional["ResolutionSession"], key: str) -> "ResolutionSession":
        """Enter ``key``, failing if it is already being resolved on this path."""
        path = session.path if session is not None else ()
        if key in path:
            raise CircularDependencyException(path[path.index(key):] + (key,))
        return cls(path + (key,))

    @property
    def path(self) -> Tuple[str, ...]:
        return self._path

    @property
    def current_key(self) -> Optional[str]:
        return self._path[-1] if self._path else None

    def describe(self) -> str:
        return " -> ".join(self._path)

    def __repr__(self) -> str:
        return f"ResolutionSession({self.describe()!r})"


@dataclass(frozen=True)
class ParameterInjection:
    name: str
    kind: Any
    injection: Optional[Injection]
    default: Any


def _type_hints(target: Any) -> Dict[str, Any]:
    try:
        return get_type_hints(target, include_extras=True)
    except (NameError, TypeError) as e:
        logger.warning(
            f"Cannot evaluate type hints of {getattr(target, '__qualname__', target)}: {e}")
        return {}


def _injection_from_hint(hint: Any) -> Optional[Injection]:
    if get_origin(hint) is Annotated:
        for meta in get_args(hint)[1:]:
            if isinstance(meta, Injection):
                return meta
    return None


def _target_name(target: Any) -> str:
    return getattr(target, "__qualname__", None) or repr(target)


def describe_parameters(target: Callable[..., Any]) -> List[ParameterInjection]:
    """List constructor/factory parameters together with their injections."""
    try:
        signature = inspect.signature(target)
    except (TypeError, ValueError):
        return []

    if inspect.isclass(target):
        hints = _type_hints(target.__init__) if "__init__" in _own_attributes(target) else {}
    else:
        hints = _type_hints(target)

    result = []
    for name, param in signature.parameters.items():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        injection = _injection_from_hint(hints.get(name))
        default = param.default
        if injection is None and isinstance(default, Injection):
            injection = default
            default = inspect.Parameter.empty
        result.append(ParameterInjection(name, param.kind, injection, default))
    return result


def describe_properties(cls: Type[Any]) -> Dict[str, Injection]:
    """Class attributes annotated with an injection marker."""
    properties = {}
    for name, hint in _type_hints(cls).items():
        injection = _injection_from_hint(hint)
        if injection is not None:
            properties[name] = injection
    return properties


def _own_attributes(cls: Type[Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    for klass in reversed(cls.__mro__[:-1]):
        merged.update(vars(klass))
    return merged


def _missing_argument(target: Any, param: ParameterInjection) -> ResolutionException:
    return ResolutionException(
        f"Cannot resolve parameter '{param.name}' of {_target_name(target)}: "
        f"no injection declared and no default value")


async def resolve_injection(ctx: "Context", injection: Injection,
                            session: Optional[ResolutionSession]) -> Any:
    if injection.key is not None:
        return await ctx.get(injection.key, optional=injection.optional, session=session)
    values = []
    for binding in ctx.find_by_tag(injection.tag_filter):
        values.append(await ctx.get(binding.key, session=session))
    return values


def resolve_injection_sync(ctx: "Context", injection: Injection,
                           session: Optional[ResolutionSession]) -> Any:
    if injection.key is not None:
        return ctx.get_sync(injection.key, optional=injection.optional, session=session)
    return [ctx.get_sync(binding.key, session=session)
            for binding in ctx.find_by_tag(injection.tag_filter)]


def _place(param: ParameterInjection, value: Any,
           args: List[Any], kwargs: Dict[str, Any]) -> None:
    if param.kind is inspect.Parameter.POSITIONAL_ONLY:
        args.append(value)
    else:
        kwargs[param.name] = value


async def resolve_arguments(target: Callable[..., Any], ctx: "Context",
                            session: Optional[ResolutionSession]) -> Tuple[List[Any], Dict[str, Any]]:
    """Resolve injected parameters in declaration order."""
    args: List[Any] = []
    kwargs: Dict[str, Any] = {}
    for param in describe_parameters(target):
        if param.injection is None:
            if param.default is inspect.Parameter.empty:
                raise _missing_argument(target, param)
            if param.kind is inspect.Parameter.POSITIONAL_ONLY:
                args.append(param.default)
            continue
        _place(param, await resolve_injection(ctx, param.injection, session), args, kwargs)
    return args, kwargs


def resolve_arguments_sync(target: Callable[..., Any], ctx: "Context",
                           session: Optional[ResolutionSession]) -> Tuple[List[Any], Dict[str, Any]]:
    args: List[Any] = []
    kwargs: Dict[str, Any] = {}
    for param in describe_parameters(target):
        if param.injection is None:
            if param.default is inspect.Parameter.empty:
                raise _missing_argument(target, param)
            if param.kind is inspect.Parameter.POSITIONAL_ONLY:
                args.append(param.default)
            continue
        _place(param, resolve_injection_sync(ctx, param.injection, session), args, kwargs)
    return args, kwargs


async def instantiate_class(cls: Type[Any], ctx: "Context",
                            session: Optional[ResolutionSession] = None) -> Any:
    """Create an instance of ``cls`` with constructor and property injection."""
    args, kwargs = await resolve_arguments(cls, ctx, session)
    instance = cls(*args, **kwargs)
    for name, injection in describe_properties(cls).items():
        setattr(instance, name, await resolve_injection(ctx, injection, session))
    return instance


def instantiate_class_sync(cls: Type[Any], ctx: "Context",
                           session: Optional[ResolutionSession] = None) -> Any:
    args, kwargs = resolve_arguments_sync(cls, ctx, session)
    instance = cls(*args, **kwargs)
    for name, injection in describe_properties(cls).items():
        setattr(instance, name, resolve_injection_sync(ctx, injection, session))
    return instance


async def invoke_factory(factory: Callable[..., Any], ctx: "Context",
                         session: Optional[ResolutionSession] = None) -> Any:
    """Call ``factory`` with injected arguments, awaiting its result if needed."""
    args, kwargs = await resolve_arguments(factory, ctx, session)
    result = factory(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


def invoke_factory_sync(factory: Callable[..., Any], ctx: "Context",
                        session: Optional[ResolutionSession] = None) -> Any:
    args, kwargs = resolve_arguments_sync(factory, ctx, session)
    return ensure_sync(factory(*args, **kwargs), session, "the factory returned an awaitable")


def ensure_sync(value: Any, session: Optional[ResolutionSession], reason: str) -> Any:
    """Reject awaitables on the synchronous path without leaking coroutines."""
    if inspect.isawaitable(value):
        if inspect.iscoroutine(value):
            value.close()
        key = session.current_key if session is not None else "<unknown>"
        raise AsyncResolutionException(key or "<unknown>", reason)
    return value
