"""
Configuration settings for the backtester.

**Conceptual**: This module provides strongly-typed configuration objects that
load from environment variables (via .env files). Settings are validated when
they are constructed, so a bad timeout or an unknown price source fails at
startup rather than halfway through a comparison run.

**What lives here**:
  - Price-source settings (CoinGecko REST API, Yahoo Finance via yfinance).
  - Run defaults (which price source to use, where reports go, log level).

**What does NOT live here**: strategy parameters. Those belong to each
BacktestConfig (src.backtesting.models), because a single comparison run
simulates four strategies with four different parameter sets.

This module uses python-dotenv to load .env files and dataclasses for type safety.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from project root (dev/local environments); a missing file is a no-op
_ENV_PATH = Path(__file__).parent.parent.parent / ".env"
load_dotenv(dotenv_path=_ENV_PATH)

PRICE_SOURCES = ("coingecko", "yfinance")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw}")


@dataclass(frozen=True)
class CoinGeckoSettings:
    """
    Configuration for the CoinGecko price API.

    **Conceptual**: CoinGecko serves historical crypto prices without an API key
    on the public tier. A demo key raises the rate limit and is sent as a header
    when configured.

    **Rate limiting**: The public tier allows roughly 10-30 calls per minute.
    A comparison run fetches the series once and replays it for every strategy,
    so a single run costs one call.

    Attributes:
        base_url: Base URL for the API (default: https://api.coingecko.com/api/v3).
        api_key: Optional demo/pro API key. None on the public tier.
        timeout_seconds: HTTP request timeout in seconds (default 30).
        vs_currency: Quote currency for prices (default "usd").
    """
    base_url: str = "https://api.coingecko.com/api/v3"
    api_key: Optional[str] = None
    timeout_seconds: int = 30
    vs_currency: str = "usd"

    def __post_init__(self):
        """Validate settings after initialization."""
        if not self.base_url:
            raise ValueError(
                "COINGECKO_BASE_URL must not be empty. "
                "Unset it to use the public endpoint."
            )
        if self.timeout_seconds <= 0:
            raise ValueError(
                f"timeout_seconds must be positive, got: {self.timeout_seconds}"
            )
        if not self.vs_currency:
            raise ValueError("vs_currency must not be empty")

    @classmethod
    def from_env(cls) -> "CoinGeckoSettings":
        """
        Load CoinGecko settings from environment variables.

        **Environment variables** (all optional):
          - COINGECKO_BASE_URL: API base URL.
          - COINGECKO_API_KEY: Demo API key.
          - COINGECKO_TIMEOUT_SECONDS: HTTP timeout in seconds (default 30).
          - COINGECKO_VS_CURRENCY: Quote currency (default "usd").

        Returns:
            CoinGeckoSettings object with values loaded from environment.

        Raises:
            ValueError: If COINGECKO_TIMEOUT_SECONDS is not an integer.

        Usage example:
            >>> settings = CoinGeckoSettings.from_env()
            >>> print(settings.base_url)  # "https://api.coingecko.com/api/v3"
        """
        return cls(
            base_url=os.getenv("COINGECKO_BASE_URL", "https://api.coingecko.com/api/v3"),
            api_key=os.getenv("COINGECKO_API_KEY") or None,
            timeout_seconds=_env_int("COINGECKO_TIMEOUT_SECONDS", "30"),
            vs_currency=os.getenv("COINGECKO_VS_CURRENCY", "usd"),
        )


@dataclass(frozen=True)
class YFinanceSettings:
    """
    Configuration for the Yahoo Finance price provider.

    **No API Key**: yfinance doesn't require authentication. Crypto pairs such
    as SOL-USD trade around the clock, so the default interval is hourly; Yahoo
    only serves hourly history for the last 730 days.

    Attributes:
        interval: Bar interval (default: "1h"). Other options: "1d", "30m", ...
        auto_adjust: Adjust OHLC for splits/dividends (no effect on crypto).
        prepost: Include pre/post market data (default: False).
        threads: Enable multi-threading in yf.download (default: True).
    """
    interval: str = "1h"
    auto_adjust: bool = False
    prepost: bool = False
    threads: bool = True

    def __post_init__(self):
        """Validate settings after initialization."""
        if not self.interval:
            raise ValueError("YFINANCE_INTERVAL must not be empty")

    @classmethod
    def from_env(cls) -> "YFinanceSettings":
        """
        Load YFinance settings from environment variables.

        **Environment variables** (all optional):
          - YFINANCE_INTERVAL (default: "1h").
          - YFINANCE_AUTO_ADJUST (default: "false").
          - YFINANCE_PREPOST (default: "false").
          - YFINANCE_THREADS (default: "true").

        Returns:
            YFinanceSettings object with values loaded from environment.
        """
        return cls(
            interval=os.getenv("YFINANCE_INTERVAL", "1h"),
            auto_adjust=_env_flag("YFINANCE_AUTO_ADJUST", "false"),
            prepost=_env_flag("YFINANCE_PREPOST", "false"),
            threads=_env_flag("YFINANCE_THREADS", "true"),
        )


@dataclass(frozen=True)
class RunSettings:
    """
    Defaults for backtest runs started from the command line.

    Attributes:
        price_source: Which provider fetches prices ("coingecko" or "yfinance").
        reports_dir: Directory where JSON reports are written.
        log_level: Minimum loguru level for the stderr sink.
    """
    price_source: str = "coingecko"
    reports_dir: Path = Path("data/reports")
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate settings after initialization."""
        if self.price_source not in PRICE_SOURCES:
            raise ValueError(
                f"PRICE_SOURCE must be one of {PRICE_SOURCES}, got: {self.price_source}"
            )

    @classmethod
    def from_env(cls) -> "RunSettings":
        """
        Load run defaults from environment variables.

        **Environment variables** (all optional):
          - PRICE_SOURCE (default: "coingecko").
          - BACKTEST_REPORTS_DIR (default: "data/reports").
          - LOG_LEVEL (default: "INFO").
        """
        return cls(
            price_source=os.getenv("PRICE_SOURCE", "coingecko").strip().lower(),
            reports_dir=Path(os.getenv("BACKTEST_REPORTS_DIR", "data/reports")),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        )


@dataclass(frozen=True)
class Settings:
    """
    Global settings for the backtester.

    **Conceptual**: Top-level settings object that aggregates all subsystem
    settings. Every subsystem works without secrets, so unlike a trading
    system there is nothing "required" to check here.

    **Usage pattern**:
      ```python
      from src.config.settings import get_settings

      settings = get_settings()
      provider = create_price_provider(settings)
      ```

    Attributes:
        coingecko: CoinGecko API settings.
        yfinance: Yahoo Finance settings.
        run: Run defaults (price source, reports dir, log level).
    """
    coingecko: CoinGeckoSettings = field(default_factory=CoinGeckoSettings)
    yfinance: YFinanceSettings = field(default_factory=YFinanceSettings)
    run: RunSettings = field(default_factory=RunSettings)

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Load global settings from environment variables.

        Raises:
            ValueError: If any subsystem setting is invalid.
        """
        return cls(
            coingecko=CoinGeckoSettings.from_env(),
            yfinance=YFinanceSettings.from_env(),
            run=RunSettings.from_env(),
        )


# Lazily built on first get_settings() call. Tests construct Settings directly
# or call reset_settings() after patching the environment.
_default_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings singleton.

    Settings are loaded from environment on first call, then cached for reuse.
    The backtest engine itself never calls this; only entry points (actions,
    provider factory callers) do, and they pass settings down explicitly.

    Returns:
        Global Settings singleton.
    """
    global _default_settings
    if _default_settings is None:
        _default_settings = Settings.from_env()
    return _default_settings


def reset_settings():
    """
    Reset the global settings singleton.

    Used in tests so that environment changes made with monkeypatch are picked
    up by the next get_settings() call.
    """
    global _default_settings
    _default_settings = None
