"""
Life cycle observer discovery and ordering.

Observers are found purely by the ``lifeCycleObserver`` tag, never by key
namespace. They are grouped by the ``lifeCycleObserverGroup`` tag; groups
run one after another and members of a group run in registration order (or
concurrently when ``parallel`` is enabled). Stopping walks the same groups
backwards.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Annotated, Any, Callable, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

from ..core.errors import ParticipantStartException, ParticipantStopException
from ..core.interfaces.lifecycle import has_hook, is_life_cycle_observer
from ..core.keys import CoreBindings, CoreTags
from ..context.binding import Binding, BindingScope
from ..context.context import Context
from ..context.metadata import bind
from ..context.resolver import inject
from ..infrastructure.config.models import LifeCycleConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_GROUP = ""

LifeCycleObserverOptions = LifeCycleConfig


def life_cycle_observer(group: str = DEFAULT_GROUP,
                        scope: BindingScope = BindingScope.SINGLETON) -> Callable[[Type[T]], Type[T]]:
    """
    Mark a class as a life cycle observer.

    Equivalent to ``@bind`` with the observer tag, the group tag and the
    observers namespace.
    """
    tags: Dict[str, Any] = {CoreTags.LIFE_CYCLE_OBSERVER: CoreTags.LIFE_CYCLE_OBSERVER}
    if group:
        tags[CoreTags.LIFE_CYCLE_OBSERVER_GROUP] = group
    return bind(tags=tags, scope=scope, namespace=CoreBindings.LIFE_CYCLE_OBSERVERS)


def as_life_cycle_observer(binding: Binding) -> None:
    """Binding template tagging a binding as a life cycle observer."""
    binding.tag(CoreTags.LIFE_CYCLE_OBSERVER)


@dataclass
class Participant:
    """A resolved instance taking part in one start/stop cycle."""
    key: str
    instance: Any
    group: str = DEFAULT_GROUP


@dataclass
class ParticipantGroup:
    name: str
    participants: List[Participant] = field(default_factory=list)


class LifeCycleObserverRegistry:
    """
    Discovers observers in a context and drives their hooks.

    Group order: groups not listed in ``options.orders`` come first, sorted
    by name; the listed groups follow in the listed order.
    """

    def __init__(self,
                 context: Annotated[Context, inject(CoreBindings.APPLICATION_INSTANCE)],
                 options: Annotated[Optional[LifeCycleConfig],
                                    inject(CoreBindings.LIFE_CYCLE_OBSERVER_OPTIONS, optional=True)] = None) -> None:
        self._context = context
        self.options = options or LifeCycleConfig()

    @staticmethod
    def get_observer_group(binding: Binding) -> str:
        group = binding.tag_map.get(CoreTags.LIFE_CYCLE_OBSERVER_GROUP, DEFAULT_GROUP)
        return str(group) if group else DEFAULT_GROUP

    def find_observer_bindings(self) -> List[Binding]:
        return self._context.find_by_tag(CoreTags.LIFE_CYCLE_OBSERVER)

    def _group_sort_key(self, group: str) -> Tuple[int, int, str]:
        if group in self.options.orders:
            return (1, self.options.orders.index(group), group)
        return (0, 0, group)

    def get_observer_groups_by_order(
            self, bindings: Optional[Sequence[Binding]] = None) -> List[Tuple[str, List[Binding]]]:
        """Group observer bindings, keeping registration order inside each group."""
        groups: Dict[str, List[Binding]] = {}
        for binding in (self.find_observer_bindings() if bindings is None else bindings):
            groups.setdefault(self.get_observer_group(binding), []).append(binding)
        return sorted(groups.items(), key=lambda item: self._group_sort_key(item[0]))

    async def resolve_participants(self) -> List[ParticipantGroup]:
        """Resolve every observer binding to the instance used for this cycle."""
        result = []
        for name, bindings in self.get_observer_groups_by_order():
            group = ParticipantGroup(name)
            for binding in bindings:
                instance = await self._context.get(binding.key)
                if not is_life_cycle_observer(instance):
                    logger.debug(f"Observer '{binding.key}' has no start/stop hooks")
                group.participants.append(Participant(binding.key, instance, name))
            result.append(group)
        return result

    async def _invoke(self, participant: Participant, hook: str) -> None:
        if not has_hook(participant.instance, hook):
            return
        logger.debug(f"Invoking {hook}() on '{participant.key}'")
        result = getattr(participant.instance, hook)()
        if inspect.isawaitable(result):
            await result

    async def _invoke_all(self, participants: Sequence[Participant],
                          hook: str) -> List[Tuple[Participant, Optional[Exception]]]:
        """Run a hook on each participant and report per-participant outcomes."""
        if self.options.parallel:
            results = await asyncio.gather(
                *(self._invoke(p, hook) for p in participants), return_exceptions=True)
            outcomes: List[Tuple[Participant, Optional[Exception]]] = []
            for participant, result in zip(participants, results):
                if isinstance(result, Exception):
                    outcomes.append((participant, result))
                elif isinstance(result, BaseException):
                    raise result
                else:
                    outcomes.append((participant, None))
            return outcomes

        outcomes = []
        for participant in participants:
            try:
                await self._invoke(participant, hook)
            except Exception as e:
                outcomes.append((participant, e))
                if hook != "stop":
                    break
            else:
                outcomes.append((participant, None))
        return outcomes

    async def init(self, groups: Sequence[ParticipantGroup]) -> None:
        """Run ``init`` hooks in start order; the first failure aborts."""
        for group in groups:
            for participant, error in await self._invoke_all(group.participants, "init"):
                if error is not None:
                    logger.error(f"Failed to initialize '{participant.key}': {error}")
                    raise ParticipantStartException(participant.key, error) from error

    async def start(self, groups: Sequence[ParticipantGroup]) -> None:
        """
        Start all participants group by group.

        Raises:
            ParticipantStartException: For the first participant that failed,
                after participants already started were stopped again
        """
        started: List[Participant] = []
        for group in groups:
            logger.debug(f"Starting life cycle group '{group.name}'")
            failure: Optional[Tuple[Participant, Exception]] = None
            for participant, error in await self._invoke_all(group.participants, "start"):
                if error is None:
                    started.append(participant)
                elif failure is None:
                    failure = (participant, error)

            if failure is not None:
                participant, error = failure
                logger.error(f"Failed to start '{participant.key}': {error}")
                rollback_failures = await self._rollback(started)
                raise ParticipantStartException(
                    participant.key, error, rollback_failures) from error

    async def _rollback(self, started: List[Participant]) -> List[Tuple[str, BaseException]]:
        failures: List[Tuple[str, BaseException]] = []
        for participant in reversed(started):
            try:
                await self._invoke(participant, "stop")
            except Exception as e:
                logger.warning(f"Error stopping '{participant.key}' during rollback: {e}")
                failures.append((participant.key, e))
        return failures

    async def stop(self, groups: Sequence[ParticipantGroup]) -> None:
        """
        Stop all participants in reverse order, attempting every one of them.

        Raises:
            ParticipantStopException: If any stop hook failed
        """
        failures: List[Tuple[str, BaseException]] = []
        for group in reversed(groups):
            logger.debug(f"Stopping life cycle group '{group.name}'")
            for participant, error in await self._invoke_all(
                    list(reversed(group.participants)), "stop"):
                if error is not None:
                    logger.error(f"Failed to stop '{participant.key}': {error}")
                    failures.append((participant.key, error))

        if failures:
            raise ParticipantStopException(failures) from failures[0][1]
