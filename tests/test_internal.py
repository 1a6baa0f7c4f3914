"""Tests for perch._internal — invoke helpers, Deferred, and param helpers."""

import anyio
import pytest

from perch._internal.deferred import Deferred
from perch._internal.invoke import invoke, settle
from perch._internal.params import equal_for_keys, filter_by_keys, inherit_params, normalize
from perch.state.registry import StateRegistry
from perch.state.types import StateDefinition

# =============================================================================
# invoke / settle
# =============================================================================


class TestInvoke:
    @pytest.mark.asyncio
    async def test_sync(self) -> None:
        assert await invoke(lambda x: x * 2, 21) == 42

    @pytest.mark.asyncio
    async def test_async(self) -> None:
        async def double(x: int) -> int:
            return x * 2

        assert await invoke(double, 21) == 42

    @pytest.mark.asyncio
    async def test_kwargs(self) -> None:
        assert await invoke(lambda *, x: x, x=1) == 1

    @pytest.mark.asyncio
    async def test_settle_plain_value(self) -> None:
        assert await settle("x") == "x"


# =============================================================================
# Deferred
# =============================================================================


class TestDeferred:
    @pytest.mark.asyncio
    async def test_resolved(self) -> None:
        deferred = Deferred.resolved(1)
        assert deferred.done
        assert await deferred == 1
        assert deferred.result() == 1

    @pytest.mark.asyncio
    async def test_waits_for_result(self) -> None:
        deferred: Deferred[str] = Deferred()
        results: list[str] = []

        async def waiter() -> None:
            results.append(await deferred)

        async with anyio.create_task_group() as tg:
            tg.start_soon(waiter)
            await anyio.sleep(0.01)
            assert results == []
            deferred.set_result("done")

        assert results == ["done"]

    @pytest.mark.asyncio
    async def test_exception(self) -> None:
        deferred: Deferred[str] = Deferred()
        error = ValueError("boom")
        deferred.set_exception(error)

        with pytest.raises(ValueError) as info:
            await deferred
        assert info.value is error

    @pytest.mark.asyncio
    async def test_wait_settled_does_not_raise(self) -> None:
        deferred: Deferred[str] = Deferred()
        deferred.set_exception(ValueError("boom"))
        await deferred.wait_settled()
        assert deferred.done

    @pytest.mark.asyncio
    async def test_result_before_settled(self) -> None:
        with pytest.raises(RuntimeError, match="not available"):
            Deferred().result()

    @pytest.mark.asyncio
    async def test_settled_once(self) -> None:
        deferred = Deferred.resolved(1)
        with pytest.raises(RuntimeError, match="already settled"):
            deferred.set_result(2)
        with pytest.raises(RuntimeError, match="already settled"):
            deferred.set_exception(ValueError())


# =============================================================================
# Parameter helpers
# =============================================================================


class TestNormalize:
    def test_stringifies(self) -> None:
        assert normalize(["id", "page"], {"id": 42, "page": "2"}) == {"id": "42", "page": "2"}

    def test_missing_become_none(self) -> None:
        assert normalize(["id"], {}) == {"id": None}

    def test_drops_undeclared(self) -> None:
        assert normalize(["id"], {"id": 1, "extra": 2}) == {"id": "1"}


class TestEqualForKeys:
    def test_string_equality(self) -> None:
        assert equal_for_keys({"id": 42}, {"id": "42"})

    def test_none_only_equals_none(self) -> None:
        assert equal_for_keys({"id": None}, {})
        assert not equal_for_keys({"id": None}, {"id": ""})

    def test_explicit_keys(self) -> None:
        assert equal_for_keys({"a": 1, "b": 2}, {"a": 1, "b": 3}, ["a"])
        assert not equal_for_keys({"a": 1, "b": 2}, {"a": 1, "b": 3}, ["a", "b"])

    def test_no_keys(self) -> None:
        assert equal_for_keys({"a": 1}, {"a": 2}, [])


class TestFilterByKeys:
    def test_restricts(self) -> None:
        assert filter_by_keys(["a"], {"a": 1, "b": 2}) == {"a": 1}

    def test_missing_become_none(self) -> None:
        assert filter_by_keys(["a", "b"], {"a": 1}) == {"a": 1, "b": None}


class TestInheritParams:
    def _registry(self) -> StateRegistry:
        registry = StateRegistry()
        registry.register(StateDefinition(name="contacts", url="/contacts/{contact_id}"))
        registry.register(StateDefinition(name="contacts.detail", url="/detail"))
        registry.register(StateDefinition(name="contacts.notes", url="/notes/{tab}"))
        registry.register(StateDefinition(name="about", url="/about"))
        return registry

    def test_carries_shared(self) -> None:
        registry = self._registry()
        result = inherit_params(
            {"contact_id": "7"},
            {"tab": "recent"},
            registry.find("contacts.detail"),
            registry.find("contacts.notes"),
        )
        assert result == {"contact_id": "7", "tab": "recent"}

    def test_explicit_wins(self) -> None:
        registry = self._registry()
        result = inherit_params(
            {"contact_id": "7"},
            {"contact_id": "8"},
            registry.find("contacts.detail"),
            registry.find("contacts.notes"),
        )
        assert result == {"contact_id": "8"}

    def test_nothing_shared(self) -> None:
        registry = self._registry()
        result = inherit_params(
            {"contact_id": "7"}, {}, registry.find("contacts.detail"), registry.find("about")
        )
        assert result == {}
