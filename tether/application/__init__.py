"""
Application layer: the lifecycle orchestrator, observer registry and servers.
"""

from .application import Application, ApplicationState
from .lifecycle import (
    DEFAULT_GROUP, LifeCycleObserverOptions, LifeCycleObserverRegistry, Participant,
    ParticipantGroup, as_life_cycle_observer, life_cycle_observer
)
from .server import Server

__all__ = [
    "Application",
    "ApplicationState",
    "DEFAULT_GROUP",
    "LifeCycleObserverOptions",
    "LifeCycleObserverRegistry",
    "Participant",
    "ParticipantGroup",
    "as_life_cycle_observer",
    "life_cycle_observer",
    "Server",
]
