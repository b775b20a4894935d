"""
Realtime Quote Controller

Keeps a quote live while the customer edits a form: parameter changes are
debounced, each change bumps a generation counter, and a calculation result
is applied only if its generation is still the latest when it arrives.

State machine:
    idle -> debouncing -> calculating -> settled | errored
    any state -> debouncing on new input (realtime mode)
    any state -> disposed (terminal)
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Optional, Set

from .models import Breakdown, CalculationState
from .protocols import CalculationError, InvalidInputError

if TYPE_CHECKING:
    from .quote_calculation_service import CalculationResult, ParamsInput, QuoteCalculationService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RealtimeSnapshot:
    """What a form shows: last good result, busy flag, current error"""
    result: Optional[Breakdown]
    is_calculating: bool
    error: Optional[CalculationError]
    state: CalculationState


SnapshotCallback = Callable[[RealtimeSnapshot], None]


class ControllerDisposedError(RuntimeError):
    """Raised when a disposed controller receives input"""


class RealtimeQuoteController:
    """
    Debounced, last-write-wins recalculation bound to one service.

    Must be driven from inside a running event loop. Several controllers may
    share a service; ordering is per controller.
    """

    def __init__(self, service: "QuoteCalculationService", debounce_ms: int = 800, realtime: bool = True):
        self._service = service
        self.debounce_ms = debounce_ms
        self.realtime = realtime

        self._generation = 0
        self._params: Optional["ParamsInput"] = None
        self._result: Optional[Breakdown] = None
        self._error: Optional[CalculationError] = None
        self._state = CalculationState.IDLE
        self._disposed = False
        self._in_flight = 0

        self._debounce_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._subscribers: List[SnapshotCallback] = []

    # =============================================================================
    # Observation
    # =============================================================================

    @property
    def state(self) -> CalculationState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def result(self) -> Optional[Breakdown]:
        return self._result

    @property
    def error(self) -> Optional[CalculationError]:
        return self._error

    @property
    def is_calculating(self) -> bool:
        return self._state == CalculationState.CALCULATING

    def snapshot(self) -> RealtimeSnapshot:
        return RealtimeSnapshot(
            result=self._result,
            is_calculating=self.is_calculating,
            error=self._error,
            state=self._state,
        )

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """
        Register a snapshot listener.

        Returns:
            Function removing the listener
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # =============================================================================
    # Input
    # =============================================================================

    def update(self, params: "ParamsInput") -> None:
        """
        Record new parameters.

        In realtime mode this (re)starts the debounce timer; any calculation
        already in flight becomes stale. In manual mode it only stores them.
        """
        self._ensure_active()
        self._generation += 1
        self._params = params

        if not self.realtime:
            return

        self._cancel_debounce()
        self._set_state(CalculationState.DEBOUNCING)
        self._debounce_task = self._spawn(self._debounce_then_calculate(self._generation))

    async def calculate_now(self, params: Optional["ParamsInput"] = None) -> "CalculationResult":
        """
        Calculate immediately, skipping the debounce window.

        The call takes a fresh generation, so a later update or
        calculate_now supersedes it.
        """
        self._ensure_active()
        if params is not None:
            self._params = params
        if self._params is None:
            raise InvalidInputError(["params: nothing to calculate"])

        self._generation += 1
        self._cancel_debounce()
        return await self._execute(self._generation, self._params)

    async def wait_until_settled(self) -> None:
        """Wait for pending debounce timers and the calculations they start"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def dispose(self) -> None:
        """
        Stop the controller.

        Pending timers are cancelled; calculations already running finish
        (their metrics still count) but their results are dropped.
        """
        if self._disposed:
            return
        self._disposed = True
        self._cancel_debounce()
        self._result = None
        self._error = None
        self._set_state(CalculationState.DISPOSED)
        self._subscribers.clear()
        logger.debug(f"Realtime controller disposed at generation {self._generation}")

    # =============================================================================
    # Internals
    # =============================================================================

    def _ensure_active(self) -> None:
        if self._disposed:
            raise ControllerDisposedError("Realtime quote controller is disposed")

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _cancel_debounce(self) -> None:
        task = self._debounce_task
        self._debounce_task = None
        if task is not None and not task.done():
            task.cancel()

    async def _debounce_then_calculate(self, generation: int) -> None:
        await asyncio.sleep(self.debounce_ms / 1000)
        if self._disposed or generation != self._generation:
            return
        # Past the timer: a later update must not cancel the calculation itself
        self._debounce_task = None
        await self._execute(generation, self._params)

    async def _execute(self, generation: int, params: "ParamsInput") -> "CalculationResult":
        self._in_flight += 1
        self._set_state(CalculationState.CALCULATING)
        try:
            result = await self._service.run(params)
        finally:
            self._in_flight -= 1

        if self._disposed:
            return result
        if generation != self._generation:
            logger.debug(f"Discarding stale quote result (generation {generation} < {self._generation})")
            self._settle_if_idle()
            return result

        if result.error is not None:
            # Keep the last good result visible next to the error
            self._error = result.error
            self._set_state(CalculationState.ERRORED)
        else:
            self._result = result.breakdown
            self._error = None
            self._set_state(CalculationState.SETTLED)
        return result

    def _settle_if_idle(self) -> None:
        # Nothing newer is running or scheduled: show the last published outcome
        if self._state != CalculationState.CALCULATING or self._in_flight or self._debounce_task is not None:
            return
        if self._error is not None:
            self._set_state(CalculationState.ERRORED)
        elif self._result is not None:
            self._set_state(CalculationState.SETTLED)
        else:
            self._set_state(CalculationState.IDLE)

    def _set_state(self, state: CalculationState) -> None:
        self._state = state
        snapshot = self.snapshot()
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(f"Quote snapshot subscriber failed: {e}")


__all__ = ["RealtimeQuoteController", "RealtimeSnapshot", "ControllerDisposedError"]
