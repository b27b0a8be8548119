"""
Tests for LifeCycleObserverRegistry.

This module tests tag-driven observer discovery, group ordering, hook
invocation, start rollback and stop failure aggregation.
"""

import asyncio
from typing import List

import pytest

from tether.application.lifecycle import (
    LifeCycleObserverRegistry, Participant, ParticipantGroup
)
from tether.context.binding import BindingScope
from tether.context.context import Context
from tether.core.errors import ParticipantStartException, ParticipantStopException
from tether.core.keys import CoreTags
from tether.infrastructure.config.models import LifeCycleConfig


class RecordingObserver:
    """Observer appending hook calls to a shared journal."""

    def __init__(self, name: str, journal: List[str],
                 fail_on: str = "") -> None:
        self.name = name
        self.journal = journal
        self.fail_on = fail_on

    def _record(self, hook: str) -> None:
        if hook == self.fail_on:
            raise RuntimeError(f"{self.name} failed to {hook}")
        self.journal.append(f"{hook}:{self.name}")

    def init(self) -> None:
        self._record("init")

    async def start(self) -> None:
        await asyncio.sleep(0)
        self._record("start")

    def stop(self) -> None:
        self._record("stop")


class InertObserver:
    pass


def _bind_observer(ctx: Context, key: str, group: str = "") -> None:
    binding = ctx.bind(key).to(object()).tag(CoreTags.LIFE_CYCLE_OBSERVER)
    if group:
        binding.tag({CoreTags.LIFE_CYCLE_OBSERVER_GROUP: group})


def _participants(journal: List[str], *specs: str, fail_on: str = "",
                  failing: str = "") -> ParticipantGroup:
    group = ParticipantGroup("g")
    for name in specs:
        observer = RecordingObserver(name, journal, fail_on if name == failing else "")
        group.participants.append(Participant(name, observer, "g"))
    return group


class TestGroupOrdering:
    """Test cases for observer discovery and group order."""

    def test_discovery_uses_tags_only(self) -> None:
        ctx = Context()
        _bind_observer(ctx, "observers.tagged")
        ctx.bind("controllers.servers").to(object())
        ctx.bind("servers.untagged").to(object())

        registry = LifeCycleObserverRegistry(ctx)

        assert [b.key for b in registry.find_observer_bindings()] == ["observers.tagged"]

    def test_default_order(self) -> None:
        """Unlisted groups come first by name, then the listed groups."""
        ctx = Context()
        _bind_observer(ctx, "s1", "server")
        _bind_observer(ctx, "b1", "b")
        _bind_observer(ctx, "d1")
        _bind_observer(ctx, "a1", "a")
        _bind_observer(ctx, "b2", "b")

        registry = LifeCycleObserverRegistry(ctx)
        groups = registry.get_observer_groups_by_order()

        assert [name for name, _ in groups] == ["", "a", "b", "server"]
        assert [b.key for b in groups[2][1]] == ["b1", "b2"]

    def test_custom_orders(self) -> None:
        ctx = Context()
        _bind_observer(ctx, "s1", "server")
        _bind_observer(ctx, "b1", "b")
        _bind_observer(ctx, "a1", "a")

        registry = LifeCycleObserverRegistry(ctx, LifeCycleConfig(orders=["server", "a"]))
        groups = registry.get_observer_groups_by_order()

        assert [name for name, _ in groups] == ["b", "server", "a"]

    def test_get_observer_group(self) -> None:
        ctx = Context()
        _bind_observer(ctx, "plain")
        _bind_observer(ctx, "grouped", "db")

        assert LifeCycleObserverRegistry.get_observer_group(ctx.get_binding("plain")) == ""
        assert LifeCycleObserverRegistry.get_observer_group(ctx.get_binding("grouped")) == "db"


@pytest.mark.asyncio
class TestResolveParticipants:
    """Test cases for resolve_participants."""

    async def test_resolves_each_binding_once(self) -> None:
        ctx = Context()
        ctx.bind("observers.a").to_class(InertObserver).tag(CoreTags.LIFE_CYCLE_OBSERVER).in_scope(
            BindingScope.SINGLETON)
        _bind_observer(ctx, "observers.b", "late")

        registry = LifeCycleObserverRegistry(ctx)
        groups = await registry.resolve_participants()

        assert [g.name for g in groups] == ["", "late"]
        assert groups[0].participants[0].instance is await ctx.get("observers.a")
        assert groups[1].participants[0].key == "observers.b"
        assert groups[1].participants[0].group == "late"


@pytest.mark.asyncio
class TestHooks:
    """Test cases for init/start/stop."""

    async def test_start_and_stop_order(self) -> None:
        journal: List[str] = []
        first = _participants(journal, "a", "b")
        second = ParticipantGroup("h", [Participant("c", RecordingObserver("c", journal), "h")])
        registry = LifeCycleObserverRegistry(Context())

        await registry.start([first, second])
        await registry.stop([first, second])

        assert journal == ["start:a", "start:b", "start:c", "stop:c", "stop:b", "stop:a"]

    async def test_init(self) -> None:
        journal: List[str] = []
        registry = LifeCycleObserverRegistry(Context())

        await registry.init([_participants(journal, "a", "b")])

        assert journal == ["init:a", "init:b"]

    async def test_init_failure(self) -> None:
        journal: List[str] = []
        registry = LifeCycleObserverRegistry(Context())

        with pytest.raises(ParticipantStartException) as exc_info:
            await registry.init([_participants(journal, "a", "b", fail_on="init", failing="a")])

        assert exc_info.value.key == "a"
        assert journal == []

    async def test_participants_without_hooks_are_skipped(self) -> None:
        registry = LifeCycleObserverRegistry(Context())
        group = ParticipantGroup("g", [Participant("inert", object(), "g")])

        await registry.start([group])
        await registry.stop([group])

    async def test_start_failure_rolls_back(self) -> None:
        """Started participants are stopped in reverse; later ones never start."""
        journal: List[str] = []
        group = _participants(journal, "a", "b", "c", "d", fail_on="start", failing="c")
        registry = LifeCycleObserverRegistry(Context())

        with pytest.raises(ParticipantStartException) as exc_info:
            await registry.start([group])

        assert exc_info.value.key == "c"
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert exc_info.value.rollback_failures == []
        assert journal == ["start:a", "start:b", "stop:b", "stop:a"]

    async def test_rollback_failures_are_reported(self) -> None:
        journal: List[str] = []
        first = _participants(journal, "a", fail_on="stop", failing="a")
        second = ParticipantGroup(
            "h", [Participant("b", RecordingObserver("b", journal, "start"), "h")])
        registry = LifeCycleObserverRegistry(Context())

        with pytest.raises(ParticipantStartException) as exc_info:
            await registry.start([first, second])

        assert exc_info.value.key == "b"
        assert [key for key, _ in exc_info.value.rollback_failures] == ["a"]
        assert "rollback also failed" in str(exc_info.value)

    async def test_stop_attempts_everyone(self) -> None:
        journal: List[str] = []
        group = _participants(journal, "a", "b", "c")
        group.participants[0].instance.fail_on = "stop"
        group.participants[2].instance.fail_on = "stop"
        registry = LifeCycleObserverRegistry(Context())

        with pytest.raises(ParticipantStopException) as exc_info:
            await registry.stop([group])

        assert journal == ["stop:b"]
        assert [key for key, _ in exc_info.value.failures] == ["c", "a"]
        assert exc_info.value.key == "c"
        assert all(isinstance(e, RuntimeError) for e in exc_info.value.causes)

    async def test_parallel_start(self) -> None:
        """Members of one group start concurrently when parallel is enabled."""
        both_started = asyncio.Event()
        running: List[str] = []

        class Waiter:
            def __init__(self, name: str) -> None:
                self.name = name

            async def start(self) -> None:
                running.append(self.name)
                if len(running) == 2:
                    both_started.set()
                await asyncio.wait_for(both_started.wait(), timeout=1)

        group = ParticipantGroup("g", [
            Participant("a", Waiter("a"), "g"),
            Participant("b", Waiter("b"), "g"),
        ])
        registry = LifeCycleObserverRegistry(Context(), LifeCycleConfig(parallel=True))

        await registry.start([group])

        assert sorted(running) == ["a", "b"]

    async def test_parallel_start_failure(self) -> None:
        journal: List[str] = []
        group = _participants(journal, "a", "b", fail_on="start", failing="b")
        registry = LifeCycleObserverRegistry(Context(), LifeCycleConfig(parallel=True))

        with pytest.raises(ParticipantStartException) as exc_info:
            await registry.start([group])

        assert exc_info.value.key == "b"
        assert journal == ["start:a", "stop:a"]
