import os
from dataclasses import dataclass, field, asdict
from decimal import Decimal
from typing import Dict, Any

from dotenv import load_dotenv

from dexarb.feeds.price_update import Venue

# Load Environment Variables from project root .env
env_path = os.path.join(os.path.dirname(__file__), "../../../.env")
load_dotenv(env_path)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # ═══════════════════════════════════════════════════════════════════
    # DEXARB CONFIGURATION (.env / environment)
    # ═══════════════════════════════════════════════════════════════════

    SILENT_MODE = _env_bool("SILENT_MODE", False)
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR = os.getenv(
        "LOG_DIR", os.path.abspath(os.path.join(os.path.dirname(__file__), "../../../logs"))
    )

    # --- Detection ---
    MIN_DIVERGENCE_PERCENT = float(os.getenv("MIN_DIVERGENCE_PERCENT", "1.0"))
    DEBOUNCE_DELAY_MS = int(os.getenv("DEBOUNCE_DELAY_MS", "300"))

    # --- Execution gate ---
    ENABLE_EXECUTION = _env_bool("ENABLE_EXECUTION", False)  # CLI wires the paper executor when set
    EXECUTION_COOLDOWN_MS = int(os.getenv("EXECUTION_COOLDOWN_MS", "10000"))
    EXECUTION_HOLD_TIMEOUT_MS = int(os.getenv("EXECUTION_HOLD_TIMEOUT_MS", "60000"))

    # --- Trade sizing ---
    TRADE_AMOUNT = Decimal(os.getenv("TRADE_AMOUNT", "0.01"))  # SOL notional per trade
    SLIPPAGE_TOLERANCE = float(os.getenv("SLIPPAGE_TOLERANCE", "0.5"))

    # --- Listeners ---
    LISTENER_RETRY_DELAY_S = float(os.getenv("LISTENER_RETRY_DELAY_S", "1.0"))

    # Stale opportunity eviction (0 = keep for process lifetime)
    OPPORTUNITY_TTL_S = float(os.getenv("OPPORTUNITY_TTL_S", "0"))


def default_refresh_pairings() -> Dict[Venue, Venue]:
    """PumpSwap ticks carry an inline price; DAMM v2 must be re-fetched to compare."""
    return {Venue.PUMPSWAP: Venue.METEORA_DAMM_V2}


@dataclass
class ArbitrageConfig:
    """Configuration for the arbitrage engine."""
    min_divergence_percent: float = 1.0
    debounce_delay_ms: int = 300
    execution_cooldown_ms: int = 10_000
    execution_hold_timeout_ms: int = 60_000
    trade_amount: Decimal = Decimal("0.01")
    slippage_tolerance: float = 0.5
    listener_retry_delay_s: float = 1.0
    opportunity_ttl_s: float = 0.0
    refresh_pairings: Dict[Venue, Venue] = field(default_factory=default_refresh_pairings)

    def __post_init__(self):
        self.trade_amount = Decimal(str(self.trade_amount))
        self.validate()

    def validate(self) -> None:
        """Raise ValueError on settings that would make the engine misbehave."""
        if self.min_divergence_percent < 0:
            raise ValueError(f"min_divergence_percent must be >= 0 (got {self.min_divergence_percent})")
        for name in ("debounce_delay_ms", "execution_cooldown_ms", "execution_hold_timeout_ms"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0 (got {getattr(self, name)})")
        if self.trade_amount <= 0:
            raise ValueError(f"trade_amount must be > 0 (got {self.trade_amount})")
        if not 0 <= self.slippage_tolerance <= 100:
            raise ValueError(f"slippage_tolerance must be a percentage (got {self.slippage_tolerance})")
        if self.listener_retry_delay_s < 0 or self.opportunity_ttl_s < 0:
            raise ValueError("listener_retry_delay_s and opportunity_ttl_s must be >= 0")
        for trigger, paired in self.refresh_pairings.items():
            if trigger == paired:
                raise ValueError(f"refresh pairing cannot map {trigger.value} to itself")

    @classmethod
    def from_settings(cls, **overrides) -> "ArbitrageConfig":
        """Build from the environment-backed Settings, applying explicit overrides."""
        values = dict(
            min_divergence_percent=Settings.MIN_DIVERGENCE_PERCENT,
            debounce_delay_ms=Settings.DEBOUNCE_DELAY_MS,
            execution_cooldown_ms=Settings.EXECUTION_COOLDOWN_MS,
            execution_hold_timeout_ms=Settings.EXECUTION_HOLD_TIMEOUT_MS,
            trade_amount=Settings.TRADE_AMOUNT,
            slippage_tolerance=Settings.SLIPPAGE_TOLERANCE,
            listener_retry_delay_s=Settings.LISTENER_RETRY_DELAY_S,
            opportunity_ttl_s=Settings.OPPORTUNITY_TTL_S,
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["trade_amount"] = str(self.trade_amount)
        data["refresh_pairings"] = {k.value: v.value for k, v in self.refresh_pairings.items()}
        return data
