"""
Core interfaces defining the contracts for lifecycle participants.
"""

from .lifecycle import (
    IStartable, IStoppable, IInitializable, IServer,
    LifeCycleObserver, Component, has_hook, is_life_cycle_observer
)

__all__ = [
    "IStartable",
    "IStoppable",
    "IInitializable",
    "IServer",
    "LifeCycleObserver",
    "Component",
    "has_hook",
    "is_life_cycle_observer",
]
