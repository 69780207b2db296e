from .types import TradeExecutor, TradeRequest, TradeResult
from .router import ExecutorRouter, PaperExecutor, paper_router

__all__ = ["TradeExecutor", "TradeRequest", "TradeResult", "ExecutorRouter", "PaperExecutor", "paper_router"]
