"""
dexarb - Cross-venue Solana DEX arbitrage engine.

Submodules:
    feeds/      - PriceUpdate contract, venue events, listeners, quote fetchers
    core/       - Opportunity store, debounce scheduler, execution gate, engine
    execution/  - Trade request/result contract and executor routing
    monitoring/ - Opportunity table reporter
"""

__version__ = "0.1.0"
