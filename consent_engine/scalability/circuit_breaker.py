"""Circuit breaker pattern: CLOSED, OPEN, HALF_OPEN. Rolling failure window, recovery timeout, call timeout."""

import asyncio
import logging
import time
from collections import deque
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple, Type, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """Raised when a call is rejected without being attempted."""

    def __init__(self, name: str, state: CircuitState) -> None:
        self.name = name
        self.state = state
        self.message = f"Circuit breaker {name} is {state.value.upper()}"
        super().__init__(self.message)


class CircuitBreaker:
    """
    Circuit breaker: failure_threshold failures inside window_seconds open the circuit
    for recovery_timeout_seconds, then half-open admits exactly one trial call.
    Success closes and resets; failure reopens and restarts the cool-down.

    A call exceeding call_timeout_seconds is cancelled and counted as a failure.
    Exceptions listed in excluded_exceptions propagate without touching the counters.
    State is mutated only under an asyncio.Lock.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout_seconds: float = 30.0,
        window_seconds: float = 60.0,
        call_timeout_seconds: Optional[float] = None,
        name: str = "default",
        excluded_exceptions: Tuple[Type[BaseException], ...] = (),
        metrics_callback: Any = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self._threshold = failure_threshold
        self._recovery_timeout = recovery_timeout_seconds
        self._window = window_seconds
        self._call_timeout = call_timeout_seconds
        self._name = name
        self._excluded = excluded_exceptions
        self._metrics = metrics_callback
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failures: Deque[float] = deque()
        self._opened_at: float | None = None
        self._trial_in_flight = False
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def call_timeout_seconds(self) -> Optional[float]:
        return self._call_timeout

    @property
    def failure_count(self) -> int:
        return len(self._failures)

    def _emit(self, metric: str) -> None:
        if self._metrics and hasattr(self._metrics, "increment"):
            self._metrics.increment(metric, 1, category=self._name)

    def _transition(self, new_state: CircuitState) -> None:
        if new_state == self._state:
            return
        logger.warning(
            "circuit_breaker_state_change",
            extra={"breaker": self._name, "from_state": self._state.value, "to_state": new_state.value},
        )
        self._state = new_state
        self._emit(f"circuit_breaker_{new_state.value}")

    def _prune(self, now: float) -> None:
        cutoff = now - self._window
        while self._failures and self._failures[0] <= cutoff:
            self._failures.popleft()

    def _record_success(self, is_trial: bool) -> None:
        self._emit("circuit_breaker_success")
        if is_trial:
            self._trial_in_flight = False
        elif self._state != CircuitState.CLOSED:
            # Admitted before the circuit opened; only the trial may close it.
            return
        self._failures.clear()
        self._opened_at = None
        self._transition(CircuitState.CLOSED)

    def _record_failure(self, is_trial: bool) -> None:
        now = self._clock()
        self._emit("circuit_breaker_failure")
        if is_trial:
            self._trial_in_flight = False
            self._opened_at = now
            self._transition(CircuitState.OPEN)
            return
        if self._state != CircuitState.CLOSED:
            return
        self._failures.append(now)
        self._prune(now)
        if len(self._failures) >= self._threshold:
            self._opened_at = now
            self._transition(CircuitState.OPEN)

    async def _before_call(self) -> bool:
        """Admit or reject a call. Returns True when the call is the half-open trial."""
        async with self._lock:
            if self._state == CircuitState.OPEN:
                if self._opened_at is not None and self._clock() - self._opened_at >= self._recovery_timeout:
                    self._transition(CircuitState.HALF_OPEN)
                else:
                    self._emit("circuit_breaker_rejected")
                    raise CircuitOpenError(self._name, self._state)
            if self._state == CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    self._emit("circuit_breaker_rejected")
                    raise CircuitOpenError(self._name, self._state)
                self._trial_in_flight = True
                return True
            return False

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Execute func through the circuit. Raises CircuitOpenError if rejected; on failure counts and may open."""
        is_trial = await self._before_call()
        try:
            if self._call_timeout is not None:
                result = await asyncio.wait_for(func(*args, **kwargs), timeout=self._call_timeout)
            else:
                result = await func(*args, **kwargs)
        except self._excluded:
            async with self._lock:
                if is_trial:
                    self._record_success(is_trial)
            raise
        except BaseException as e:
            async with self._lock:
                if isinstance(e, Exception):
                    self._record_failure(is_trial)
                elif is_trial:
                    # Cancelled trial: give the next caller the slot.
                    self._trial_in_flight = False
                    self._opened_at = self._clock() - self._recovery_timeout
                    self._transition(CircuitState.OPEN)
            raise
        async with self._lock:
            self._record_success(is_trial)
        return result
