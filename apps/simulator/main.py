"""Simulator process: drives a TradingSession in real time.

One task owns the session. Commands from other coroutines (orders,
cancels, lot closes, scenario injection, reset) are queued and applied
between ticks, so no caller ever sees a half-applied tick. Each command
resolves through a future carrying its result (or its exception).
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from packages.common.config import RunnerConfig, load_config
from packages.common.errors import (
    InvariantViolationError,
    SessionFaultedError,
    SessionStateError,
)
from packages.common.logging import get_logger, setup_logging
from packages.common.types import (
    AIDetailedAnalysis,
    CancelResult,
    CloseLotResult,
    OrderInput,
    Scenario,
    ScenarioType,
    SubmitResult,
)
from packages.session.session import TradingSession

logger = get_logger(__name__)

Command = tuple[Callable[..., Any], tuple[Any, ...], asyncio.Future[Any]]


class SimulationRunner:
    """Single-writer host around a TradingSession."""

    def __init__(self, session: TradingSession, config: RunnerConfig | None = None) -> None:
        cfg = config or RunnerConfig()
        self._session = session
        self._tick_interval = cfg.tick_interval_seconds
        self._tick_dt = cfg.tick_dt
        self._queue: asyncio.Queue[Command] = asyncio.Queue()
        self._stopping = False
        self._running = False
        self._ticks = 0

    @property
    def session(self) -> TradingSession:
        return self._session

    @property
    def ticks(self) -> int:
        return self._ticks

    async def call(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Queue `fn(*args)` to run between ticks and wait for its result.

        Raises SessionStateError when the loop is not running.
        """
        if not self._running:
            raise SessionStateError("Simulator loop is not running")
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        await self._queue.put((fn, args, future))
        return await future

    async def submit_order(self, order_input: OrderInput) -> SubmitResult:
        return await self.call(self._session.submit_order, order_input)

    async def cancel_order(self, order_id: str) -> CancelResult:
        return await self.call(self._session.cancel_order, order_id)

    async def close_lot(self, lot_id: str) -> CloseLotResult:
        return await self.call(self._session.close_lot, lot_id)

    async def inject_scenario(self, scenario_type: ScenarioType) -> Scenario:
        return await self.call(self._session.inject_scenario, scenario_type)

    async def reset(self, seed: int | None = None) -> None:
        await self.call(self._session.reset, seed)

    async def scan(self) -> AIDetailedAnalysis | None:
        """Delayed scan; runs alongside the tick loop since it only reads."""
        return await self._session.start_scan()

    def stop(self) -> None:
        self._stopping = True

    def _drain_commands(self) -> None:
        while not self._queue.empty():
            fn, args, future = self._queue.get_nowait()
            if future.cancelled():
                continue
            try:
                future.set_result(fn(*args))
            except InvariantViolationError as e:
                future.set_exception(e)
                raise
            except Exception as e:
                future.set_exception(e)

    def _fail_pending(self, error: BaseException) -> None:
        while not self._queue.empty():
            _, _, future = self._queue.get_nowait()
            if not future.done():
                future.set_exception(error)

    async def run(self, max_ticks: int | None = None) -> None:
        """Main loop: apply queued commands, tick, sleep."""
        logger.info(
            "simulator_started",
            symbol=self._session.symbol,
            tick_interval=self._tick_interval,
            max_ticks=max_ticks,
        )
        self._running = True
        try:
            while not self._stopping and (max_ticks is None or self._ticks < max_ticks):
                self._drain_commands()
                result = self._session.tick(self._tick_dt)
                self._ticks += 1
                if result.fills:
                    logger.info("tick_fills", tick=self._ticks, fills=len(result.fills))
                await asyncio.sleep(self._tick_interval)
            self._drain_commands()
        except (InvariantViolationError, SessionFaultedError) as e:
            logger.critical("simulator_halted", error=str(e), tick=self._ticks)
            self._fail_pending(e)
            raise
        finally:
            self._running = False
            self._stopping = False
            self._fail_pending(SessionStateError("Simulator loop stopped"))

        logger.info(
            "simulator_stopped",
            ticks=self._ticks,
            equity=round(self._session.equity(), 2),
        )


async def run_simulator() -> None:
    """Entry point for the simulator process."""
    cfg = load_config()
    setup_logging(cfg.logging.level, cfg.logging.json_format)
    runner = SimulationRunner(TradingSession(cfg), cfg.runner)
    await runner.run()


def main() -> None:
    asyncio.run(run_simulator())


if __name__ == "__main__":
    main()
