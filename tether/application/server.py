"""
Base class for servers.

A server is a lifecycle participant owning a listening resource. It is also
a context of its own, so it can hold bindings scoped to it (handlers,
routes, connection settings) while falling back to the application context.
"""

from typing import Annotated, Optional

from ..core.keys import CoreBindings
from ..context.context import Context
from ..context.resolver import inject


class Server(Context):
    """Tracks ``listening``; subclasses open and close the actual resource."""

    def __init__(self,
                 parent: Annotated[Optional[Context],
                                   inject(CoreBindings.APPLICATION_INSTANCE, optional=True)] = None,
                 name: Optional[str] = None) -> None:
        super().__init__(parent, name)
        self.listening = False

    async def start(self) -> None:
        self.listening = True

    async def stop(self) -> None:
        self.listening = False
