from .opportunity_store import DataState, Opportunity, OpportunitySnapshot, OpportunityStore
from .debounce import DebounceScheduler
from .execution_gate import ExecutionGate, GateHold, LockState
from .arbitrage_engine import ArbitrageEngine

__all__ = [
    "ArbitrageEngine",
    "DataState",
    "DebounceScheduler",
    "ExecutionGate",
    "GateHold",
    "LockState",
    "Opportunity",
    "OpportunitySnapshot",
    "OpportunityStore",
]
