"""
The application: a root context plus start/stop orchestration.

    app = Application()
    app.component(RestComponent)
    app.life_cycle_observer(CacheWarmer)
    await app.start()
    ...
    await app.stop()

Only bindings tagged ``lifeCycleObserver`` (and components exposing
start/stop hooks) take part in a cycle; keys are never pattern matched.
"""

import asyncio
import logging
import signal
from enum import Enum
from typing import Any, Dict, List, Optional, Type, Union

from ..core.errors import BindingNotFoundException, LifecycleStateException
from ..core.interfaces.lifecycle import is_life_cycle_observer
from ..core.keys import BindingKey, CoreBindings, CoreTags
from ..context.binding import Binding, BindingScope
from ..context.context import Context
from ..context.metadata import BindingSpec, create_binding_from_class
from ..infrastructure.config.models import ApplicationConfig
from .lifecycle import (
    LifeCycleObserverRegistry, Participant, ParticipantGroup, as_life_cycle_observer
)

logger = logging.getLogger(__name__)

SERVER_GROUP = "server"


class ApplicationState(Enum):
    """Lifecycle status; STARTING and STOPPING guard re-entrant calls."""
    CREATED = "created"
    STARTING = "starting"
    STARTED = "started"
    STOPPING = "stopping"
    STOPPED = "stopped"


class Application(Context):
    """
    Root context that registers components, servers and observers and
    drives them through start/stop cycles.

    Participants are resolved once at the beginning of each cycle and the
    same instances are stopped at its end; bindings registered while the
    application is started join the next cycle.
    """

    def __init__(self,
                 config: Union[ApplicationConfig, Dict[str, Any], None] = None,
                 parent: Optional[Context] = None) -> None:
        if isinstance(config, dict):
            config = ApplicationConfig.from_dict(config)
        self._config = config or ApplicationConfig()
        super().__init__(parent, name=self._config.name)

        self._state = ApplicationState.CREATED
        self._transition: Optional["asyncio.Future[None]"] = None
        self._participants: Optional[List[ParticipantGroup]] = None
        self._component_participants: List[Participant] = []
        self._initialized_keys: set = set()
        self._shutdown_requested: Optional[asyncio.Event] = None

        self._setup_bindings()

    def _setup_bindings(self) -> None:
        self.bind(CoreBindings.APPLICATION_INSTANCE).to(self).lock()
        self.bind(CoreBindings.APPLICATION_CONFIG).to(self._config).lock()
        self.bind(CoreBindings.LIFE_CYCLE_OBSERVER_OPTIONS).to(self._config.lifecycle)
        self.bind(CoreBindings.LIFE_CYCLE_OBSERVER_REGISTRY).to_class(
            LifeCycleObserverRegistry).in_scope(BindingScope.SINGLETON).lock()

    @property
    def state(self) -> ApplicationState:
        return self._state

    @property
    def config(self) -> ApplicationConfig:
        return self._config

    def _assert_not_in_transition(self, action: str) -> None:
        if self._state in (ApplicationState.STARTING, ApplicationState.STOPPING):
            raise LifecycleStateException(
                f"Cannot {action} while the application is {self._state.value}")

    # Registration

    def bind(self, key: str) -> Binding:
        self._assert_not_in_transition(f"bind '{key}'")
        return super().bind(key)

    def rebind(self, key: str) -> Binding:
        self._assert_not_in_transition(f"rebind '{key}'")
        return super().rebind(key)

    def add(self, binding: Binding, replace: bool = False) -> "Application":
        self._assert_not_in_transition(f"add '{binding.key}'")
        super().add(binding, replace=replace)
        return self

    def component(self, component_cls: Type[Any], name: Optional[str] = None) -> Binding:
        """
        Register a component and mount what it contributes.

        The component is bound as a singleton under ``components.<name>`` and
        constructed once, synchronously. Its ``servers``,
        ``life_cycle_observers``, ``classes``, ``providers`` and ``bindings``
        are registered. If it has start/stop hooks it is tracked directly,
        unless the class is itself declared a life cycle observer, in which
        case it takes part through its observer group instead.

        If constructing or mounting fails, every binding registered for the
        component is removed again before the error propagates.

        Returns:
            The component binding
        """
        self._assert_not_in_transition("register a component")
        binding = create_binding_from_class(
            component_cls, BindingSpec(namespace=CoreBindings.COMPONENTS, name=name),
            default_scope=BindingScope.SINGLETON,
        ).tag(CoreTags.COMPONENT)

        registered = set(self._registry)
        self.add(binding)
        try:
            instance = self.get_sync(binding.key)
            self._mount_component(binding, instance)
        except Exception:
            for key in [k for k in self._registry if k not in registered]:
                del self._registry[key]
            logger.error(f"Failed to register component '{binding.key}'")
            raise
        logger.info(f"Registered component '{binding.key}'")
        return binding

    def _mount_component(self, binding: Binding, component: Any) -> None:
        for server_name, server_cls in (getattr(component, "servers", None) or {}).items():
            self.server(server_cls, server_name)

        for observer_cls in getattr(component, "life_cycle_observers", None) or []:
            self.life_cycle_observer(observer_cls)

        for class_key, cls in (getattr(component, "classes", None) or {}).items():
            self.bind(class_key).to_class(cls)

        for provider_key, provider_cls in (getattr(component, "providers", None) or {}).items():
            self.bind(provider_key).to_provider(provider_cls)

        for contributed in getattr(component, "bindings", None) or []:
            self.add(contributed)

        if (is_life_cycle_observer(component)
                and CoreTags.LIFE_CYCLE_OBSERVER not in binding.tag_map):
            self._component_participants.append(
                Participant(binding.key, component, CoreBindings.COMPONENTS))

    def server(self, server_cls: Type[Any], name: Optional[str] = None) -> Binding:
        """Register a server as a singleton observer in the ``server`` group."""
        binding = create_binding_from_class(
            server_cls, BindingSpec(name=name) if name else None,
            default_namespace=CoreBindings.SERVERS,
            default_scope=BindingScope.SINGLETON,
        ).tag(CoreTags.LIFE_CYCLE_OBSERVER, CoreTags.SERVER)
        if CoreTags.LIFE_CYCLE_OBSERVER_GROUP not in binding.tag_map:
            binding.tag({CoreTags.LIFE_CYCLE_OBSERVER_GROUP: SERVER_GROUP})
        self.add(binding)
        logger.debug(f"Registered server '{binding.key}'")
        return binding

    def life_cycle_observer(self, observer_cls: Type[Any], name: Optional[str] = None) -> Binding:
        """Register a life cycle observer, honouring metadata declared on the class."""
        binding = create_binding_from_class(
            observer_cls, BindingSpec(name=name) if name else None,
            default_namespace=CoreBindings.LIFE_CYCLE_OBSERVERS,
            default_scope=BindingScope.SINGLETON,
        ).apply(as_life_cycle_observer)
        self.add(binding)
        logger.debug(f"Registered life cycle observer '{binding.key}'")
        return binding

    async def get_server(self, target: Union[str, Type[Any]]) -> Any:
        """
        Resolve a registered server by name or by class.

        A name resolves ``servers.<name>``; a class resolves the first server
        binding, in registration order, created from that class.
        """
        if isinstance(target, str):
            return await self.get(BindingKey.build(CoreBindings.SERVERS, target))

        for binding in self.find_by_tag(CoreTags.SERVER):
            if binding.value_constructor is target:
                return await self.get(binding.key)
        raise BindingNotFoundException(
            BindingKey.build(CoreBindings.SERVERS, target.__name__), self.name)

    # Lifecycle

    async def _get_registry(self) -> LifeCycleObserverRegistry:
        return await self.get(CoreBindings.LIFE_CYCLE_OBSERVER_REGISTRY)  # type: ignore[no-any-return]

    async def _discover_participants(self) -> List[ParticipantGroup]:
        groups = []
        if self._component_participants:
            groups.append(ParticipantGroup(
                CoreBindings.COMPONENTS, list(self._component_participants)))
        registry = await self._get_registry()
        groups.extend(await registry.resolve_participants())
        return groups

    async def _init_participants(self, groups: List[ParticipantGroup]) -> None:
        pending = []
        for group in groups:
            members = [p for p in group.participants if p.key not in self._initialized_keys]
            if members:
                pending.append(ParticipantGroup(group.name, members))
        if not pending:
            return
        registry = await self._get_registry()
        await registry.init(pending)
        for group in pending:
            self._initialized_keys.update(p.key for p in group.participants)

    async def init(self) -> None:
        """Run ``init`` hooks of the current participants; each runs at most once."""
        self._assert_not_in_transition("initialize")
        await self._init_participants(await self._discover_participants())

    async def start(self) -> None:
        """
        Start every participant.

        A no-op when already started; joins the in-flight start when one is
        running.

        Raises:
            LifecycleStateException: If the application is stopping
            ParticipantStartException: If a participant failed to start; the
                participants started before it have been stopped again
        """
        if self._state is ApplicationState.STARTED:
            return
        if self._state is ApplicationState.STARTING and self._transition is not None:
            await asyncio.shield(self._transition)
            return
        if self._state is ApplicationState.STOPPING:
            raise LifecycleStateException("Cannot start the application while it is stopping")

        self._state = ApplicationState.STARTING
        self._transition = asyncio.ensure_future(self._start())
        await self._transition

    async def _start(self) -> None:
        logger.info(f"Starting application {self.name}")
        try:
            groups = await self._discover_participants()
            await self._init_participants(groups)
            registry = await self._get_registry()
            await registry.start(groups)
        except BaseException:
            self._participants = None
            self._state = ApplicationState.STOPPED
            logger.error(f"Application {self.name} failed to start")
            raise
        self._participants = groups
        self._state = ApplicationState.STARTED
        count = sum(len(g.participants) for g in groups)
        logger.info(f"Application {self.name} started with {count} life cycle participants")

    async def stop(self) -> None:
        """
        Stop the participants of the current cycle in reverse order.

        A no-op before the first start and after a stop; joins the in-flight
        stop when one is running. The application always ends up STOPPED.

        Raises:
            LifecycleStateException: If the application is starting
            ParticipantStopException: If any participant failed to stop
        """
        if self._state in (ApplicationState.CREATED, ApplicationState.STOPPED):
            return
        if self._state is ApplicationState.STOPPING and self._transition is not None:
            await asyncio.shield(self._transition)
            return
        if self._state is ApplicationState.STARTING:
            raise LifecycleStateException("Cannot stop the application while it is starting")

        self._state = ApplicationState.STOPPING
        self._transition = asyncio.ensure_future(self._stop())
        await self._transition

    async def _stop(self) -> None:
        logger.info(f"Stopping application {self.name}")
        groups = self._participants or []
        try:
            registry = await self._get_registry()
            await registry.stop(groups)
        finally:
            self._participants = None
            self._state = ApplicationState.STOPPED
            logger.info(f"Application {self.name} stopped")

    def request_shutdown(self) -> None:
        """Ask a running ``run()`` to stop the application."""
        if self._shutdown_requested is not None:
            self._shutdown_requested.set()

    async def run(self) -> None:
        """
        Start the application and keep it running until a shutdown signal
        (or ``request_shutdown()``), then stop it within the grace period.
        """
        loop = asyncio.get_running_loop()
        self._shutdown_requested = asyncio.Event()
        installed = []
        for signal_name in self._config.shutdown.signals:
            signum = getattr(signal, signal_name)
            try:
                loop.add_signal_handler(signum, self.request_shutdown)
                installed.append(signum)
            except (NotImplementedError, RuntimeError) as e:
                logger.warning(f"Cannot install handler for {signal_name}: {e}")

        try:
            await self.start()
            logger.info(f"Application {self.name} is running")
            await self._shutdown_requested.wait()
            logger.info("Shutdown requested")
        finally:
            for signum in installed:
                loop.remove_signal_handler(signum)
            grace_period = self._config.shutdown.grace_period
            if grace_period:
                await asyncio.wait_for(self.stop(), grace_period)
            else:
                await self.stop()
            self._shutdown_requested = None
