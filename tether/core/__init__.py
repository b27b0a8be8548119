"""
Core module containing the key vocabulary, error taxonomy and lifecycle
contracts shared by the context and application layers.
"""

from .errors import (
    TetherException, BindingNotFoundException, DuplicateBindingException,
    BindingLockedException, BindingFrozenException, ResolutionException,
    CircularDependencyException, AsyncResolutionException,
    LifecycleStateException, ParticipantStartException, ParticipantStopException
)
from .keys import BindingKey, CoreBindings, CoreTags, ContextTags
from .interfaces.lifecycle import (
    IStartable, IStoppable, IInitializable, IServer, LifeCycleObserver, Component
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
]
