"""
Solve-cycle scheduler

Runs one solve cycle at a time on the event loop and decides, from the
cycle's outcome alone, whether to continue, back off, skip the question or
stop. The next timer is armed only after the previous outcome has been
fully handled, so two cycles never overlap.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from config import SolverConfig
from models import CycleOutcome, SchedulerState

logger = logging.getLogger(__name__)

STATUS_RUNNING = "Running"
STATUS_STOPPED = "Stopped"
STATUS_FINISHED = "Finished"
STATUS_TIMEOUT = "Finished (Timeout)"

SolveTask = Callable[[bool], Awaitable[Any]]
SkipAction = Callable[[], Awaitable[Any]]


def coerce_outcome(result: Any) -> CycleOutcome:
    """Map a task result onto an outcome; booleans mean success/failure"""
    if isinstance(result, CycleOutcome):
        return result
    if isinstance(result, bool) or result is None:
        return CycleOutcome.SUCCESS if result else CycleOutcome.FAILURE
    return CycleOutcome(result)


class Scheduler:
    """
    State machine over {Stopped, Running}

    Outcome handling:
        FINISHED     stop, status "Finished"
        NO_QUESTION  idle += 1; stop with "Finished (Timeout)" at idle_threshold, else half interval
        SUCCESS      reset both counters, full interval
        FAILURE      failures += 1, idle = 0; at retries run the skip action,
                     reset failures and use the full interval, else half interval
        exception    half interval, counters untouched (error_policy="retry")
                     or handled as FAILURE (error_policy="count")
    """

    def __init__(self, task: SolveTask, skip_action: SkipAction, config: SolverConfig,
                 on_status: Optional[Callable[[str], None]] = None):
        self.task = task
        self.skip_action = skip_action
        self.config = config
        self.on_status = on_status
        self.state = SchedulerState()
        self.status = STATUS_STOPPED
        self.skips = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._current: Optional[asyncio.Task] = None
        self._generation = 0
        self._stopped = asyncio.Event()
        self._stopped.set()

    @property
    def active(self) -> bool:
        return self.state.active

    @property
    def full_interval(self) -> float:
        return self.config.loop_interval

    @property
    def half_interval(self) -> float:
        return self.config.loop_interval / 2

    def _set_status(self, status: str):
        self.status = status
        if self.on_status is not None:
            self.on_status(status)

    def start(self):
        """Begin cycling; the first cycle runs immediately and skips solved questions"""
        if self.state.active:
            return
        self.state = SchedulerState(active=True)
        self._generation += 1
        self._stopped.clear()
        self._set_status(STATUS_RUNNING)
        logger.info("[SCHEDULER] Scheduler started.")
        previous = self._current
        self._current = asyncio.get_running_loop().create_task(self._run_after(previous))

    def stop(self):
        """Cancel the pending timer; a cycle already in flight is left to finish"""
        if not self.state.active:
            return
        self.state.active = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._set_status(STATUS_STOPPED)
        self._stopped.set()
        logger.info("[SCHEDULER] Scheduler stopped.")

    async def wait_stopped(self):
        await self._stopped.wait()

    def _schedule_next(self, delay: float, generation: int):
        # A run that was stopped, or replaced by a restart, arms nothing
        if not self.state.active or generation != self._generation:
            return
        self._timer = asyncio.get_running_loop().call_later(delay, self._fire)

    def _fire(self):
        self._timer = None
        self._current = asyncio.get_running_loop().create_task(self._run_task(False))

    async def _run_after(self, previous: Optional[asyncio.Task]):
        # A restart must not overlap a cycle left running by stop()
        if previous is not None and not previous.done():
            await asyncio.wait({previous})
        await self._run_task(False)

    async def _run_task(self, include_solved: bool = False):
        if not self.state.active:
            return

        generation = self._generation
        try:
            outcome = coerce_outcome(await self.task(include_solved))
        except Exception as e:
            logger.error(f"[SCHEDULER] Scheduled task execution failed: {e}", exc_info=True)
            outcome = None

        # Results of a cycle started before stop() belong to no run
        if not self.state.active or generation != self._generation:
            logger.debug("[SCHEDULER] Ignoring result of a cycle from a stopped run")
            return

        if outcome is None:
            if self.config.error_policy == "retry":
                self._schedule_next(self.half_interval, generation)
                return
            outcome = CycleOutcome.FAILURE

        try:
            await self._handle_outcome(outcome, generation)
        except Exception as e:
            logger.error(f"[SCHEDULER] Handling outcome {outcome.value} failed: {e}", exc_info=True)
            self._schedule_next(self.half_interval, generation)

    async def _handle_outcome(self, outcome: CycleOutcome, generation: int):
        state = self.state

        if outcome is CycleOutcome.FINISHED:
            logger.info("[SCHEDULER] Task reported FINISHED. Stopping.")
            self.stop()
            self._set_status(STATUS_FINISHED)
            return

        if outcome is CycleOutcome.NO_QUESTION:
            state.idle_count += 1
            if state.idle_count >= self.config.idle_threshold:
                logger.warning(f"[SCHEDULER] Idle for {state.idle_count} cycles. Stopping due to inactivity.")
                self.stop()
                self._set_status(STATUS_TIMEOUT)
                return
            self._schedule_next(self.half_interval, generation)
            return

        if outcome is CycleOutcome.SUCCESS:
            state.failure_count = 0
            state.idle_count = 0
            self._schedule_next(self.full_interval, generation)
            return

        state.failure_count += 1
        state.idle_count = 0
        if state.failure_count >= self.config.retries:
            logger.warning(f"[SCHEDULER] Max retries ({self.config.retries}) reached. Skipping question.")
            self.skips += 1
            await self.skip_action()
            state.failure_count = 0
            self._schedule_next(self.full_interval, generation)
        else:
            self._schedule_next(self.half_interval, generation)

    def to_dict(self):
        data = self.state.to_dict()
        data.update({"status": self.status, "skips": self.skips})
        return data
