"""
Tests for declarative binding metadata.

This module tests the @bind and @life_cycle_observer decorators,
BindingSpec merging and create_binding_from_class, including the
equivalence of both declaration styles.
"""

from dataclasses import FrozenInstanceError

import pytest

from tether.application.lifecycle import life_cycle_observer
from tether.context.binding import BindingScope, BindingType
from tether.context.metadata import (
    BindingSpec, bind, create_binding_from_class, get_binding_spec
)
from tether.core.keys import CoreBindings, CoreTags


class Plain:
    pass


@bind(tags={"cache": "cache"}, scope=BindingScope.SINGLETON, namespace="services")
class CacheService:
    pass


@bind(key="db.primary")
class Database:
    pass


@bind(tags={"key": "from.tag", "name": "ignored-for-key"})
class KeyedByTag:
    pass


@bind(tags={"outer": "outer", "shared": "outer"}, scope=BindingScope.TRANSIENT)
@bind(tags={"inner": "inner", "shared": "inner"}, scope=BindingScope.SINGLETON)
class Stacked:
    pass


class SubclassOfCache(CacheService):
    pass


class WithSpecMethod:
    @classmethod
    def binding_spec(cls) -> BindingSpec:
        return BindingSpec(tags={"special": "special"}, namespace="extras")


@bind(
    tags={
        CoreTags.LIFE_CYCLE_OBSERVER: CoreTags.LIFE_CYCLE_OBSERVER,
        CoreTags.LIFE_CYCLE_OBSERVER_GROUP: "my-group",
        "namespace": CoreBindings.LIFE_CYCLE_OBSERVERS,
    },
    scope=BindingScope.SINGLETON,
)
class ObserverWithBind:
    def start(self) -> None:
        pass


@life_cycle_observer("my-group", BindingScope.SINGLETON)
class ObserverWithDecorator:
    def start(self) -> None:
        pass


class TestBindingSpec:
    """Test cases for BindingSpec."""

    def test_merge(self) -> None:
        base = BindingSpec(tags={"a": 1, "b": 1}, scope=BindingScope.SINGLETON, name="base")
        merged = base.merge(BindingSpec(tags={"b": 2}, namespace="ns"))

        assert merged.tags == {"a": 1, "b": 2}
        assert merged.scope is BindingScope.SINGLETON
        assert merged.namespace == "ns"
        assert merged.name == "base"
        assert base.tags == {"a": 1, "b": 1}

    def test_merge_none(self) -> None:
        spec = BindingSpec(name="x")

        assert spec.merge(None) is spec

    def test_spec_is_frozen(self) -> None:
        spec = BindingSpec()

        with pytest.raises(FrozenInstanceError):
            spec.name = "changed"  # type: ignore[misc]


class TestBindDecorator:
    """Test cases for @bind and get_binding_spec."""

    def test_attaches_spec(self) -> None:
        spec = get_binding_spec(CacheService)

        assert spec is not None
        assert spec.tags == {"cache": "cache"}
        assert spec.scope is BindingScope.SINGLETON
        assert spec.namespace == "services"

    def test_undecorated_class(self) -> None:
        assert get_binding_spec(Plain) is None

    def test_subclass_does_not_inherit(self) -> None:
        assert get_binding_spec(SubclassOfCache) is None

    def test_stacked_decorators_nearest_wins(self) -> None:
        spec = get_binding_spec(Stacked)

        assert spec is not None
        assert spec.tags == {"inner": "inner", "outer": "outer", "shared": "inner"}
        assert spec.scope is BindingScope.SINGLETON

    def test_binding_spec_classmethod(self) -> None:
        spec = get_binding_spec(WithSpecMethod)

        assert spec is not None
        assert spec.namespace == "extras"


class TestCreateBindingFromClass:
    """Test cases for create_binding_from_class."""

    def test_plain_class(self) -> None:
        binding = create_binding_from_class(Plain)

        assert binding.key == "Plain"
        assert binding.type is BindingType.CLASS
        assert binding.value_constructor is Plain
        assert binding.scope is BindingScope.TRANSIENT
        assert binding.tag_map == {"name": "Plain"}

    def test_defaults(self) -> None:
        binding = create_binding_from_class(
            Plain, default_namespace="things", default_scope=BindingScope.SINGLETON)

        assert binding.key == "things.Plain"
        assert binding.scope is BindingScope.SINGLETON
        assert binding.tag_map["namespace"] == "things"

    def test_declared_metadata(self) -> None:
        binding = create_binding_from_class(CacheService, default_namespace="ignored")

        assert binding.key == "services.CacheService"
        assert binding.scope is BindingScope.SINGLETON
        assert binding.tag_map["cache"] == "cache"

    def test_explicit_key(self) -> None:
        assert create_binding_from_class(Database).key == "db.primary"

    def test_key_tag(self) -> None:
        binding = create_binding_from_class(KeyedByTag)

        assert binding.key == "from.tag"
        assert "key" not in binding.tag_map

    def test_caller_spec_overrides_class(self) -> None:
        binding = create_binding_from_class(
            CacheService, BindingSpec(name="primary", scope=BindingScope.TRANSIENT))

        assert binding.key == "services.primary"
        assert binding.scope is BindingScope.TRANSIENT
        assert binding.tag_map["name"] == "primary"

    def test_bind_metadata_with_group(self) -> None:
        binding = create_binding_from_class(ObserverWithBind)

        assert binding.key == "lifeCycleObservers.ObserverWithBind"
        assert binding.tag_map[CoreTags.LIFE_CYCLE_OBSERVER_GROUP] == "my-group"

    def test_declaration_styles_are_equivalent(self) -> None:
        """@bind and @life_cycle_observer produce identical bindings."""
        spec = BindingSpec(name="observer")
        with_bind = create_binding_from_class(ObserverWithBind, spec).to_dict()
        with_decorator = create_binding_from_class(ObserverWithDecorator, spec).to_dict()

        assert with_bind.pop("value_constructor") == "ObserverWithBind"
        assert with_decorator.pop("value_constructor") == "ObserverWithDecorator"
        assert with_bind == with_decorator
        assert with_bind["key"] == "lifeCycleObservers.observer"
        assert with_bind["tags"][CoreTags.LIFE_CYCLE_OBSERVER_GROUP] == "my-group"
