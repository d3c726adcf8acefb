"""Configuration loading from YAML + environment variables."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from packages.common.errors import ConfigError
from packages.common.types import MarketRegime


def _resolve_env_vars(value: str) -> str:
    """Resolve ${VAR:default} patterns in strings."""
    pattern = r"\$\{(\w+)(?::([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)
        return os.environ.get(var_name, default if default is not None else "")

    return re.sub(pattern, replacer, value)


def _resolve_config(obj: Any) -> Any:
    """Recursively resolve environment variables in config."""
    if isinstance(obj, str):
        return _resolve_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _resolve_config(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_resolve_config(v) for v in obj]
    return obj


class MarketConfig(BaseModel):
    symbol: str = "NATLEE"
    base_price: float = Field(default=50.0, gt=0)
    base_volatility: float = Field(default=0.0015, ge=0)
    bull_drift: float = 0.0008
    bear_drift: float = -0.0008
    chop_drift: float = 0.0
    wick_volatility: float = Field(default=0.0008, ge=0)
    regime_duration_min: int = Field(default=30, ge=1)  # ticks
    regime_duration_max: int = Field(default=60, ge=1)
    regime_weights: dict[MarketRegime, float] = Field(
        default_factory=lambda: {
            MarketRegime.BULL: 0.3,
            MarketRegime.BEAR: 0.3,
            MarketRegime.CHOP: 0.4,
        }
    )
    scenario_probability: float = Field(default=0.15, ge=0, le=1)
    volume_min: float = Field(default=10_000, ge=0)
    volume_max: float = Field(default=60_000, ge=0)
    min_price: float = Field(default=0.01, gt=0)
    max_candles: int = Field(default=100, ge=1)
    base_interval_seconds: float = Field(default=1.0, gt=0)
    sentiment_lookback: int = Field(default=5, ge=1)
    seed: int | None = 42

    @model_validator(mode="after")
    def _check_ranges(self) -> MarketConfig:
        if self.regime_duration_min > self.regime_duration_max:
            raise ValueError("regime_duration_min must be <= regime_duration_max")
        if self.volume_min > self.volume_max:
            raise ValueError("volume_min must be <= volume_max")
        if not self.regime_weights or sum(self.regime_weights.values()) <= 0:
            raise ValueError("regime_weights must contain a positive weight")
        return self


class OrderBookConfig(BaseModel):
    depth: int = Field(default=15, ge=1)
    spread_percent: float = Field(default=0.001, gt=0)
    level_step_percent: float = Field(default=0.0005, gt=0)
    size_min: float = Field(default=10, gt=0)
    size_max: float = Field(default=100, gt=0)
    pressure_strength: float = Field(default=0.5, ge=0, lt=1)
    price_tick: float = Field(default=0.01, gt=0)

    @model_validator(mode="after")
    def _check_sizes(self) -> OrderBookConfig:
        if self.size_min > self.size_max:
            raise ValueError("size_min must be <= size_max")
        return self


class TradingConfig(BaseModel):
    initial_balance: float = Field(default=1_000_000.0, ge=0)
    commission_rate: float = Field(default=0.0005, ge=0)  # 0.05%
    default_leverage: float = Field(default=1.0, ge=1)
    max_leverage: float = Field(default=10.0, ge=1)
    max_trade_history: int = Field(default=1000, ge=1)
    max_order_history: int = Field(default=1000, ge=1)
    max_equity_history: int = Field(default=10_000, ge=2)


class AnalysisWeights(BaseModel):
    """Contribution of each sub-analysis to the net direction score."""

    trend: float = 0.3  # x trend strength
    order_book: float = 25.0
    momentum: float = 15.0
    volume_confirmation: float = 10.0
    pattern: float = 0.2  # x pattern confidence


class AnalysisConfig(BaseModel):
    scan_latency_seconds: float = Field(default=2.2, ge=0)
    rsi_period: int = Field(default=14, ge=2)
    lookback: int = Field(default=10, ge=2)
    volume_trend_threshold: float = Field(default=0.2, ge=0)
    imbalance_ratio: float = Field(default=1.5, gt=1)
    direction_threshold: float = Field(default=20.0, ge=0)
    max_confidence: float = Field(default=90.0, ge=0, le=100)
    weights: AnalysisWeights = Field(default_factory=AnalysisWeights)


class RunnerConfig(BaseModel):
    tick_interval_seconds: float = Field(default=0.1, ge=0)
    tick_dt: float = Field(default=1.0, gt=0)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    json_format: bool = False


class AppConfig(BaseModel):
    market: MarketConfig = Field(default_factory=MarketConfig)
    order_book: OrderBookConfig = Field(default_factory=OrderBookConfig)
    trading: TradingConfig = Field(default_factory=TradingConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load config from YAML file with environment variable resolution."""
    config_path = Path("config/default.yaml") if config_path is None else Path(config_path)

    if not config_path.exists():
        return AppConfig()

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}
    resolved = _resolve_config(raw)
    try:
        return AppConfig.model_validate(resolved)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e
