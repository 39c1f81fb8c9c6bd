"""
Tests for Mutation: write calls, callbacks and cache invalidation.
"""
import asyncio

import pytest

from conftest import CountingFetcher, settle
from querysync.cache import Mutation, QueryStatus


async def _echo(variables):
    return {"saved": variables}


async def _fail(variables):
    raise RuntimeError("rejected")


class TestMutate:

    @pytest.mark.asyncio
    async def test_success_returns_result(self):
        mutation = Mutation(_echo)

        result = await mutation.mutate({"name": "prod"})

        assert result == {"saved": {"name": "prod"}}
        assert mutation.data == result
        assert mutation.error is None
        assert mutation.state.status == QueryStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_write_returning_none_is_success(self):
        async def delete_key(variables):
            return None

        mutation = Mutation(delete_key)
        assert mutation.state.status == QueryStatus.IDLE

        assert await mutation.mutate("key_1") is None
        assert mutation.state.succeeded is True
        assert mutation.state.status == QueryStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_failure_is_raised_and_recorded(self):
        mutation = Mutation(_fail)

        with pytest.raises(RuntimeError):
            await mutation.mutate({"name": "prod"})

        assert isinstance(mutation.error, RuntimeError)
        assert mutation.loading is False
        assert mutation.state.status == QueryStatus.ERROR

    @pytest.mark.asyncio
    async def test_execute_captures_error(self):
        state = await Mutation(_fail).execute(1)

        assert isinstance(state.error, RuntimeError)
        assert state.variables == 1

    @pytest.mark.asyncio
    async def test_mutate_async_alias(self):
        assert await Mutation(_echo).mutate_async(2) == {"saved": 2}

    @pytest.mark.asyncio
    async def test_loading_while_running(self):
        gate = asyncio.Event()

        async def slow(variables):
            await gate.wait()
            return variables

        mutation = Mutation(slow)
        first = asyncio.ensure_future(mutation.mutate(1))
        second = asyncio.ensure_future(mutation.mutate(2))
        await settle()

        assert mutation.loading is True
        assert mutation.pending_count == 2

        gate.set()
        assert await asyncio.gather(first, second) == [1, 2]
        assert mutation.pending_count == 0
        assert mutation.data == 2

    @pytest.mark.asyncio
    async def test_reset(self):
        mutation = Mutation(_echo)
        await mutation.mutate(1)

        mutation.reset()

        assert mutation.data is None
        assert mutation.state.status == QueryStatus.IDLE


class TestCallbacks:

    @pytest.mark.asyncio
    async def test_success_callbacks(self):
        events = []

        async def on_success(result, variables):
            events.append(("success", result, variables))

        mutation = Mutation(
            _echo,
            on_success=on_success,
            on_error=lambda error, variables: events.append(("error",)),
            on_settled=lambda result, error, variables: events.append(("settled", result, error)),
        )
        await mutation.mutate(1)

        assert events == [
            ("success", {"saved": 1}, 1),
            ("settled", {"saved": 1}, None),
        ]

    @pytest.mark.asyncio
    async def test_error_callbacks(self):
        events = []
        mutation = Mutation(
            _fail,
            on_success=lambda result, variables: events.append("success"),
            on_error=lambda error, variables: events.append(("error", str(error), variables)),
            on_settled=lambda result, error, variables: events.append(("settled", result, str(error))),
        )

        with pytest.raises(RuntimeError):
            await mutation.mutate(7)

        assert events == [("error", "rejected", 7), ("settled", None, "rejected")]


class TestInvalidation:

    def test_invalidate_queries_requires_cache(self):
        with pytest.raises(ValueError):
            Mutation(_echo, invalidate_queries=["customer-api-keys"])

    @pytest.mark.asyncio
    async def test_success_invalidates_and_refetches_observed(self, cache, options):
        fetcher = CountingFetcher([{"id": "k1"}], [{"id": "k1"}, {"id": "k2"}])
        seen = []
        unsubscribe = cache.subscribe("customer-api-keys", seen.append, fetcher, options)
        await settle()

        mutation = Mutation(_echo, cache=cache, invalidate_queries=["customer-api-keys"])
        await mutation.mutate({"name": "k2"})
        await settle()

        assert fetcher.calls == 2
        assert seen[-1].data == [{"id": "k1"}, {"id": "k2"}]
        unsubscribe()

    @pytest.mark.asyncio
    async def test_invalidation_runs_before_on_success(self, cache, clock, options):
        await cache.resolve("customer-wallet", CountingFetcher({"balance": 1}), options)
        stale_in_callback = []

        mutation = Mutation(
            _echo,
            cache=cache,
            invalidate_queries=["customer-wallet"],
            on_success=lambda result, variables: stale_in_callback.append(
                cache.get_entry("customer-wallet").is_stale(clock.now)
            ),
        )
        await mutation.mutate(None)

        assert stale_in_callback == [True]

    @pytest.mark.asyncio
    async def test_failure_does_not_invalidate(self, cache, clock, options):
        await cache.resolve("customer-wallet", CountingFetcher({"balance": 1}), options)

        mutation = Mutation(_fail, cache=cache, invalidate_queries=["customer-wallet"])
        with pytest.raises(RuntimeError):
            await mutation.mutate(None)

        assert not cache.get_entry("customer-wallet").is_stale(clock.now)
