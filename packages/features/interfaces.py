"""Abstract interfaces for candle-derived features and analyzers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Generic, TypeVar

import pandas as pd
from pydantic import BaseModel

from packages.common.types import Candle

CANDLE_COLUMNS = ["timestamp", "open", "high", "low", "close", "volume"]

ResultT = TypeVar("ResultT", bound=BaseModel)


def candles_to_frame(candles: Sequence[Candle]) -> pd.DataFrame:
    """Candle history as a DataFrame, oldest row first."""
    if not candles:
        return pd.DataFrame(columns=CANDLE_COLUMNS)
    return pd.DataFrame([c.model_dump() for c in candles], columns=CANDLE_COLUMNS)


class FeatureComputer(ABC):
    """Base class for per-candle indicator columns."""

    @abstractmethod
    def compute(self, candles: pd.DataFrame) -> pd.DataFrame:
        """Compute features from candle data.

        Args:
            candles: DataFrame with columns [timestamp, open, high, low, close, volume]

        Returns:
            DataFrame with feature columns, index aligned with input.
            Row i only uses rows <= i.
        """

    @abstractmethod
    def feature_names(self) -> list[str]:
        """Return list of feature column names produced by this computer."""


class CandleAnalyzer(ABC, Generic[ResultT]):
    """Reduce a candle window to one immutable analysis result."""

    @abstractmethod
    def analyze(self, candles: pd.DataFrame) -> ResultT:
        """Analyze the most recent candles. Must not mutate `candles`."""
