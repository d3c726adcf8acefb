"""Integration tests for the single-writer simulation runner."""

from __future__ import annotations

import asyncio

import pytest

from apps.simulator.main import SimulationRunner
from packages.common.config import RunnerConfig
from packages.common.errors import LedgerInvariantError, SessionStateError
from packages.common.types import OrderInput, Side
from packages.session.session import TradingSession


def _make_runner(seed: int = 42) -> SimulationRunner:
    return SimulationRunner(
        TradingSession(seed=seed),
        RunnerConfig(tick_interval_seconds=0.0, tick_dt=1.0),
    )


async def _wait_for_ticks(runner: SimulationRunner, n: int) -> None:
    async def poll() -> None:
        while runner.ticks < n:
            await asyncio.sleep(0)

    await asyncio.wait_for(poll(), timeout=5.0)


class TestSimulationRunner:
    def test_runs_requested_ticks(self) -> None:
        runner = _make_runner()
        asyncio.run(runner.run(max_ticks=20))

        assert runner.ticks == 20
        assert len(runner.session.history) == 20

    def test_queued_order_applied_between_ticks(self) -> None:
        """A command sent while running resolves with the session's result."""
        runner = _make_runner()

        async def client() -> object:
            await _wait_for_ticks(runner, 1)
            return await runner.submit_order(OrderInput(side=Side.BUY, quantity=10))

        async def run() -> object:
            _, result = await asyncio.gather(runner.run(max_ticks=20), client())
            return result

        result = asyncio.run(run())

        assert result.ok
        assert runner.session.holding.quantity == pytest.approx(10)

    def test_stop_ends_loop(self) -> None:
        runner = _make_runner()

        async def stopper() -> None:
            await _wait_for_ticks(runner, 5)
            runner.stop()

        async def run() -> None:
            await asyncio.gather(runner.run(), stopper())

        asyncio.run(run())
        assert runner.ticks >= 5

    def test_command_error_goes_to_caller(self) -> None:
        """An ordinary exception reaches the caller; the loop keeps ticking."""
        runner = _make_runner()

        def broken() -> None:
            raise ValueError("bad command")

        async def client() -> None:
            await _wait_for_ticks(runner, 1)
            with pytest.raises(ValueError, match="bad command"):
                await runner.call(broken)

        async def run() -> None:
            await asyncio.gather(runner.run(max_ticks=10), client())

        asyncio.run(run())
        assert runner.ticks == 10

    def test_invariant_fault_halts_runner(self) -> None:
        runner = _make_runner()

        async def client() -> None:
            await _wait_for_ticks(runner, 1)
            runner.session._ledger._net_quantity = 5.0
            await runner.submit_order(OrderInput(side=Side.BUY, quantity=10))

        async def run() -> list[object]:
            return await asyncio.gather(
                runner.run(max_ticks=50), client(), return_exceptions=True
            )

        outcomes = asyncio.run(run())

        assert all(isinstance(o, LedgerInvariantError) for o in outcomes)
        assert runner.session.faulted

    def test_command_after_stop_rejected(self) -> None:
        """Once the loop has returned, commands fail fast instead of waiting."""
        runner = _make_runner()

        async def run() -> None:
            await runner.run(max_ticks=2)
            with pytest.raises(SessionStateError):
                await asyncio.wait_for(
                    runner.submit_order(OrderInput(side=Side.BUY, quantity=10)), timeout=5.0
                )

        asyncio.run(run())
        assert runner.session.lots == []
