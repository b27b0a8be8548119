"""
Binding registry, dependency resolution and declarative binding metadata.
"""

from .binding import (
    ANY_TAG_VALUE, Binding, BindingScope, BindingTemplate, BindingType, filter_by_tag
)
from .context import Context
from .metadata import BindingSpec, bind, create_binding_from_class, get_binding_spec
from .resolver import Injection, ResolutionSession, inject, inject_tag

__all__ = [
    "ANY_TAG_VALUE",
    "Binding",
    "BindingScope",
    "BindingTemplate",
    "BindingType",
    "filter_by_tag",
    "Context",
    "BindingSpec",
    "bind",
    "create_binding_from_class",
    "get_binding_spec",
    "Injection",
    "ResolutionSession",
    "inject",
    "inject_tag",
]
