#!/usr/bin/env python3
"""
Market Signal Engine - Demo Runner

This script demonstrates the complete pipeline on reproducible synthetic data:
    Step 1: Seeded OHLCV series generation (geometric random walk)
    Step 2: Technical indicator computation and divergence detection
    Step 3: Composite sentiment scoring of a market snapshot

EXECUTION
    python run_demo.py
    python run_demo.py --bars 250 --seed 7
    python run_demo.py --no-high-low --surrogate

OUTPUT ARTIFACTS
    outputs/
        demo_prices.csv             Synthetic bars fed to the engine
        demo_report.json            Indicator and sentiment summary

Version: 1.0.0
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from market_signals.config import ENGINE_VERSION
from market_signals.engine import (
    IndicatorReport,
    TechnicalIndicatorEngine,
    print_indicator_report,
)
from market_signals.price_data import MarketSnapshot, MissingFieldPolicy, PriceChange
from market_signals.sentiment import SentimentProfile


# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_BARS: int = 180
DEFAULT_SEED: int = 42
DEFAULT_START_PRICE: float = 1.25

OUTPUT_DIR = Path("outputs")


# =============================================================================
# DISPLAY COMPONENTS
# =============================================================================

BANNER = r'''
╔═══════════════════════════════════════════════════════════════════════════════╗
║                                                                               ║
║              MARKET SIGNAL ENGINE                                             ║
║                                                                               ║
║              Technical indicators and composite market sentiment              ║
║                                                                               ║
╚═══════════════════════════════════════════════════════════════════════════════╝
'''


def print_section_header(title: str, char: str = "═") -> None:
    """Print a formatted section header."""
    width = 79
    print()
    print(char * width)
    print(f"  {title}")
    print(char * width)
    print()


def format_number(value: float, precision: int = 2) -> str:
    """Format a number with appropriate precision."""
    if abs(value) >= 1e9:
        return f"{value/1e9:.{precision}f}B"
    elif abs(value) >= 1e6:
        return f"{value/1e6:.{precision}f}M"
    elif abs(value) >= 1e3:
        return f"{value/1e3:.{precision}f}K"
    else:
        return f"{value:.{precision}f}"


def ensure_directories() -> None:
    """Create required directory structure."""
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)


# =============================================================================
# STEP 1: SYNTHETIC DATA
# =============================================================================

def generate_prices(
    bars: int,
    seed: int,
    start_price: float = DEFAULT_START_PRICE,
    with_high_low: bool = True
) -> pd.DataFrame:
    """
    Build a seeded OHLCV frame from a geometric random walk.

    Parameters
    ----------
    bars : int
        Number of daily bars
    seed : int
        RandomState seed
    start_price : float
        First close
    with_high_low : bool
        Omit the High/Low columns when False (exercises the missing-field policy)

    Returns
    -------
    pd.DataFrame
        Close/High/Low/Volume indexed by ISO date strings
    """
    rng = np.random.RandomState(seed)

    # Regime drift: rally, pullback, recovery
    drift = np.concatenate([
        np.full(bars // 3, 0.004),
        np.full(bars // 3, -0.003),
        np.full(bars - 2 * (bars // 3), 0.002),
    ])
    returns = drift + rng.normal(0.0, 0.02, bars)
    close = start_price * np.exp(np.cumsum(returns))

    spread = np.abs(rng.normal(0.0, 0.012, bars))
    high = close * (1 + spread)
    low = close * (1 - spread * rng.uniform(0.5, 1.0, bars))
    volume = rng.lognormal(mean=17.5, sigma=0.35, size=bars)

    dates = pd.date_range(start="2024-01-01", periods=bars, freq="D")
    df = pd.DataFrame(
        {"Close": close, "High": high, "Low": low, "Volume": volume},
        index=dates.strftime("%Y-%m-%d"),
    )
    df.index.name = "Date"
    if not with_high_low:
        df = df.drop(columns=["High", "Low"])
    return df


def build_snapshot(prices: pd.DataFrame, seed: int) -> MarketSnapshot:
    """Derive a market snapshot from the tail of the synthetic series."""
    rng = np.random.RandomState(seed + 1)
    close = prices["Close"]

    def pct(bars_back: int) -> float:
        reference = close.iloc[-1 - bars_back] if len(close) > bars_back else close.iloc[0]
        return float((close.iloc[-1] / reference - 1) * 100)

    h24 = pct(1)
    buys = int(rng.randint(20_000, 80_000))
    sells = int(rng.randint(20_000, 80_000))

    return MarketSnapshot(
        price_usd=float(close.iloc[-1]),
        price_change_24h=h24,
        price_change=PriceChange(h1=h24 / 6, h6=h24 / 2, h24=h24),
        volume_24h=float(prices["Volume"].iloc[-1]) * float(close.iloc[-1]),
        liquidity_usd=float(rng.uniform(250e6, 450e6)),
        buys_24h=buys,
        sells_24h=sells,
    )


# =============================================================================
# STEP 2-3: ENGINE
# =============================================================================

def run_engine(
    prices: pd.DataFrame,
    snapshot: MarketSnapshot,
    policy: MissingFieldPolicy,
    logger: logging.Logger
) -> Optional[IndicatorReport]:
    """Run the indicator engine and composite scorer."""
    print_section_header("STEP 2: TECHNICAL INDICATORS")

    try:
        engine = TechnicalIndicatorEngine(policy=policy)
        report = engine.process(prices, snapshot=snapshot)
    except ValueError as e:
        logger.error(f"Engine rejected input: {e}")
        return None

    print_indicator_report(report)

    ok = sum(1 for r in report.results.values() if r.ok)
    logger.info(f"{ok}/{len(report.results)} indicators computed")

    print_section_header("STEP 3: SENTIMENT PROFILES")
    for profile in SentimentProfile:
        print(f"  {profile.value:<16} {report.sentiment.label(profile)}")

    return report


def main() -> int:
    """
    Main entry point for the demo runner.

    Returns
    -------
    int
        Exit code (0 for success, 1 for failure)
    """
    start_time = time.time()

    parser = argparse.ArgumentParser(
        description="Market Signal Engine - Demo Runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_demo.py                           # 180 bars, seed 42
  python run_demo.py --bars 250 --seed 7
  python run_demo.py --no-high-low             # STRICT policy reports MISSING_FIELD
  python run_demo.py --no-high-low --surrogate # fill high/low from close
        """
    )
    parser.add_argument("--bars", "-n", type=int, default=DEFAULT_BARS,
                        help=f"Number of synthetic bars (default: {DEFAULT_BARS})")
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED,
                        help=f"Random seed (default: {DEFAULT_SEED})")
    parser.add_argument("--no-high-low", action="store_true",
                        help="Drop the High/Low columns from the synthetic data")
    parser.add_argument("--surrogate", action="store_true",
                        help="Use the SURROGATE missing-field policy")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose logging")
    parser.add_argument("--version", action="version",
                        version=f"%(prog)s {ENGINE_VERSION}")

    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="  %(asctime)s │ %(levelname)s │ %(message)s",
        datefmt="%H:%M:%S"
    )
    logger = logging.getLogger(__name__)

    print(BANNER)
    print(f"  Execution Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"  Bars:              {args.bars}")
    print(f"  Seed:              {args.seed}")
    print(f"  Version:           {ENGINE_VERSION}")
    print()

    ensure_directories()

    print_section_header("STEP 1: SYNTHETIC DATA")
    prices = generate_prices(args.bars, args.seed, with_high_low=not args.no_high_low)
    snapshot = build_snapshot(prices, args.seed)

    prices_path = OUTPUT_DIR / "demo_prices.csv"
    prices.to_csv(prices_path)
    logger.info(f"Generated {len(prices)} bars → {prices_path}")
    print(f"  Last close:     {prices['Close'].iloc[-1]:.6f}")
    print(f"  24h change:     {snapshot.change_24h:+.2f}%")
    print(f"  24h volume:     ${format_number(snapshot.volume_24h)}")
    print(f"  Liquidity:      ${format_number(snapshot.liquidity_usd)}")
    print(f"  Buy ratio:      {snapshot.buy_ratio:.1%}")

    policy = MissingFieldPolicy.SURROGATE if args.surrogate else MissingFieldPolicy.STRICT
    report = run_engine(prices, snapshot, policy, logger)
    if report is None:
        return 1

    report_path = OUTPUT_DIR / "demo_report.json"
    with open(report_path, "w", encoding="utf-8") as fh:
        json.dump(report.to_dict(), fh, indent=2)
    logger.info(f"Saved report → {report_path}")

    elapsed = time.time() - start_time
    print_section_header("COMPLETE")
    print(f"  Execution time: {elapsed:.2f}s")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
