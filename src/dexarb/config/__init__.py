from .settings import Settings, ArbitrageConfig, default_refresh_pairings

__all__ = ["Settings", "ArbitrageConfig", "default_refresh_pairings"]
