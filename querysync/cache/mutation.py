"""
Write operations against the remote API, with cache invalidation on
success.
"""
import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, List, Optional

from .core import QueryStatus

if TYPE_CHECKING:
    from .manager import QueryCache

logger = logging.getLogger("cache.mutation")

MutationFn = Callable[[Any], Awaitable[Any]]


@dataclass
class MutationState:
    """State of a single mutate() call."""
    variables: Any = None
    data: Any = None
    error: Optional[BaseException] = None
    loading: bool = False
    succeeded: bool = False

    @property
    def status(self) -> QueryStatus:
        if self.loading:
            return QueryStatus.LOADING
        if self.error is not None:
            return QueryStatus.ERROR
        if self.succeeded:
            return QueryStatus.SUCCESS
        return QueryStatus.IDLE


async def _call(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class Mutation:
    """
    Wraps a write function (create/update/delete).

    Concurrent calls are allowed and each gets its own MutationState;
    nothing is deduplicated. Failures are re-raised and never touch the
    cache.

    Usage:
        update_key = Mutation(
            api_keys_update,
            cache=cache,
            invalidate_queries=["customer-api-keys"],
        )
        await update_key.mutate({"id": "key_1", "isActive": False})
    """

    def __init__(
        self,
        mutation_fn: MutationFn,
        cache: Optional["QueryCache"] = None,
        on_success: Optional[Callable[[Any, Any], Any]] = None,
        on_error: Optional[Callable[[BaseException, Any], Any]] = None,
        on_settled: Optional[Callable[[Any, Optional[BaseException], Any], Any]] = None,
        invalidate_queries: Optional[Iterable[str]] = None,
    ):
        """
        Initialize the mutation.

        Args:
            mutation_fn: Coroutine function called with the mutate() variables
            cache: Query cache to invalidate on success
            on_success: Called with (result, variables) after invalidation
            on_error: Called with (error, variables)
            on_settled: Called with (result, error, variables) either way
            invalidate_queries: Keys to invalidate after a successful write
        """
        self._mutation_fn = mutation_fn
        self._cache = cache
        self._on_success = on_success
        self._on_error = on_error
        self._on_settled = on_settled
        self._invalidate_queries: List[str] = list(invalidate_queries or [])
        if self._invalidate_queries and cache is None:
            raise ValueError("invalidate_queries requires a cache")

        self._latest = MutationState()
        self._pending = 0

    @property
    def state(self) -> MutationState:
        """State of the most recent call."""
        return self._latest

    @property
    def loading(self) -> bool:
        return self._latest.loading

    @property
    def error(self) -> Optional[BaseException]:
        return self._latest.error

    @property
    def data(self) -> Any:
        return self._latest.data

    @property
    def pending_count(self) -> int:
        """Number of calls currently running."""
        return self._pending

    async def execute(self, variables: Any = None) -> MutationState:
        """
        Run the write and return this call's own state.

        Errors are captured in the returned state instead of raised.
        """
        state = MutationState(variables=variables, loading=True)
        self._latest = state
        self._pending += 1
        try:
            result = await self._mutation_fn(variables)
        except Exception as e:
            state.error = e
            state.loading = False
            logger.warning(f"Mutation failed: {e!r}")
            await _call(self._on_error, e, variables)
            await _call(self._on_settled, None, e, variables)
            return state
        finally:
            self._pending -= 1

        state.data = result
        state.succeeded = True
        state.loading = False
        if self._invalidate_queries:
            self._cache.invalidate(self._invalidate_queries)
        await _call(self._on_success, result, variables)
        await _call(self._on_settled, result, None, variables)
        return state

    async def mutate(self, variables: Any = None) -> Any:
        """
        Run the write.

        Returns:
            The write function's result

        Raises:
            Exception: The write function's error, after on_error/on_settled
        """
        state = await self.execute(variables)
        if state.error is not None:
            raise state.error
        return state.data

    mutate_async = mutate

    def reset(self) -> None:
        """Clear the exposed state (running calls are unaffected)."""
        self._latest = MutationState()
