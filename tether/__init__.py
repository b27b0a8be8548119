"""
Tether - an inversion-of-control container with application lifecycle orchestration.

Client code registers components, servers and life cycle observers into a
context; the container resolves dependency graphs on request and the
application brings every registered participant up and down in a
deterministic order.
"""

__version__ = "0.1.0"

# Public API exports
from .core.errors import (
    TetherException, BindingNotFoundException, DuplicateBindingException,
    BindingLockedException, BindingFrozenException, ResolutionException,
    CircularDependencyException, AsyncResolutionException,
    LifecycleStateException, ParticipantStartException, ParticipantStopException
)
from .core.keys import BindingKey, CoreBindings, CoreTags, ContextTags
from .core.interfaces.lifecycle import (
    IStartable, IStoppable, IInitializable, IServer, LifeCycleObserver, Component
)
from .context import (
    ANY_TAG_VALUE, Binding, BindingScope, BindingSpec, BindingType, Context,
    bind, create_binding_from_class, filter_by_tag, inject, inject_tag
)
from .application import (
    Application, ApplicationState, LifeCycleObserverOptions, LifeCycleObserverRegistry,
    Server, as_life_cycle_observer, life_cycle_observer
)

__all__ = [
    "TetherException",
    "BindingNotFoundException",
    "DuplicateBindingException",
    "BindingLockedException",
    "BindingFrozenException",
    "ResolutionException",
    "CircularDependencyException",
    "AsyncResolutionException",
    "LifecycleStateException",
    "ParticipantStartException",
    "ParticipantStopException",
    "BindingKey",
    "CoreBindings",
    "CoreTags",
    "ContextTags",
    "IStartable",
    "IStoppable",
    "IInitializable",
    "IServer",
    "LifeCycleObserver",
    "Component",
    "ANY_TAG_VALUE",
    "Binding",
    "BindingScope",
    "BindingSpec",
    "BindingType",
    "Context",
    "bind",
    "create_binding_from_class",
    "filter_by_tag",
    "inject",
    "inject_tag",
    "Application",
    "ApplicationState",
    "LifeCycleObserverOptions",
    "LifeCycleObserverRegistry",
    "Server",
    "as_life_cycle_observer",
    "life_cycle_observer",
]
