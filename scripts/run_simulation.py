"""CLI entrypoint for a headless simulation run."""

from __future__ import annotations

import click

from packages.common.config import load_config
from packages.common.logging import get_logger, setup_logging
from packages.common.types import Recommendation, ScenarioType, Side
from packages.portfolio.metrics import format_report
from packages.session.session import TradingSession

logger = get_logger(__name__)


def auto_trade(session: TradingSession, quantity: float) -> None:
    """Follow the latest scan: go long on LONG, short on SHORT, hold otherwise."""
    analysis = session.scan_now()
    if analysis is None:
        return

    position = session.holding.quantity
    call = analysis.overall.recommendation
    if call is Recommendation.LONG and position <= 0:
        result = session.order(Side.BUY, quantity + abs(position))
    elif call is Recommendation.SHORT and position >= 0:
        result = session.order(Side.SELL, quantity + abs(position))
    else:
        return

    logger.info(
        "auto_trade",
        recommendation=call.value,
        confidence=analysis.overall.confidence,
        accepted=result.ok,
        reason=result.reason,
    )


@click.command()
@click.option("--config", "config_path", default="config/default.yaml", help="Config file path")
@click.option("--ticks", default=500, type=int, help="Number of ticks to simulate")
@click.option("--seed", default=None, type=int, help="PRNG seed (overrides config)")
@click.option(
    "--auto-trade",
    "auto_trade_enabled",
    is_flag=True,
    help="Trade on periodic scan recommendations",
)
@click.option("--scan-every", default=25, type=int, help="Ticks between auto-trade scans")
@click.option("--quantity", default=100.0, type=float, help="Auto-trade order size")
@click.option(
    "--scenario",
    default=None,
    type=click.Choice([s.value for s in ScenarioType]),
    help="Inject a scenario halfway through the run",
)
def main(
    config_path: str,
    ticks: int,
    seed: int | None,
    auto_trade_enabled: bool,
    scan_every: int,
    quantity: float,
    scenario: str | None,
) -> None:
    """Run the NATLEE market headlessly and print a session report."""
    cfg = load_config(config_path)
    setup_logging(cfg.logging.level, cfg.logging.json_format)
    session = TradingSession(cfg, seed=seed)

    for i in range(1, ticks + 1):
        if scenario is not None and i == ticks // 2:
            session.inject_scenario(ScenarioType(scenario))
        session.tick()
        if auto_trade_enabled and i % scan_every == 0:
            auto_trade(session, quantity)

    stats = session.market_stats()
    click.echo(
        f"{session.symbol} last={stats.last_price:.2f} change={stats.change_percent:+.2f}% "
        f"regime={stats.regime.value} sentiment={stats.sentiment:.0f}"
    )
    click.echo(format_report(session.trade_summary(), session.symbol))


if __name__ == "__main__":
    main()
