"""Asynchronous market scan with an artificial latency.

State machine: idle -> scanning -> analyzed (-> scanning on the next start).
At most one scan is in flight. A start while scanning is a no-op that
returns None. `discard()` drops the in-flight result; the scan itself
reads state only, so there is nothing to roll back.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import datetime

from packages.common.logging import get_logger
from packages.common.types import AIDetailedAnalysis, Candle, OrderBookSnapshot, ScanState
from packages.signals.analysis_engine import AnalysisEngine

logger = get_logger(__name__)

ScanInputs = tuple[Sequence[Candle], OrderBookSnapshot | None, datetime]


class MarketScanner:
    """Owns scan state and the latest completed analysis."""

    def __init__(self, engine: AnalysisEngine, latency_seconds: float = 2.2) -> None:
        self._engine = engine
        self._latency = latency_seconds
        self._state = ScanState.IDLE
        self._last: AIDetailedAnalysis | None = None
        self._generation = 0
        self._in_flight = False

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def last_analysis(self) -> AIDetailedAnalysis | None:
        return self._last

    async def start(self, inputs: Callable[[], ScanInputs]) -> AIDetailedAnalysis | None:
        """Wait out the latency, then analyze whatever `inputs()` returns then.

        Returns None if a scan was already running, if the scan was discarded
        while waiting, or if there is no market yet.
        """
        if self._in_flight:
            logger.debug("scan_already_running")
            return None

        self._in_flight = True
        self._state = ScanState.SCANNING
        generation = self._generation
        logger.info("scan_started", latency=self._latency)

        try:
            await asyncio.sleep(self._latency)
        except asyncio.CancelledError:
            if generation == self._generation:
                self._in_flight = False
                self._settle()
            raise

        if generation != self._generation:
            logger.info("scan_discarded")
            return None

        self._in_flight = False
        history, book, timestamp = inputs()
        return self.scan_now(history, book, timestamp)

    def scan_now(
        self,
        history: Sequence[Candle],
        book: OrderBookSnapshot | None,
        timestamp: datetime,
    ) -> AIDetailedAnalysis | None:
        """Synchronous scan, no latency. Supersedes any previous analysis.

        An in-flight delayed scan stays in flight.
        """
        if book is None:
            logger.warning("scan_skipped_no_market")
            self._settle()
            return None

        self._last = self._engine.scan(history, book, timestamp)
        self._settle()
        return self._last

    def discard(self) -> None:
        """Drop an in-flight scan's result."""
        self._generation += 1
        self._in_flight = False
        self._settle()

    def reset(self) -> None:
        self._generation += 1
        self._in_flight = False
        self._state = ScanState.IDLE
        self._last = None

    def _settle(self) -> None:
        if self._in_flight:
            self._state = ScanState.SCANNING
        else:
            self._state = ScanState.ANALYZED if self._last is not None else ScanState.IDLE
