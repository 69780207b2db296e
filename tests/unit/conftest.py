"""
Unit Test Configuration
=======================
Fixtures for pure logic tests - NO I/O ALLOWED.

All unit tests should be completely isolated from:
- Network (RPC, websockets)
- Log files (no Loguru sinks are attached)
- File system (except tmp_path)
"""

import asyncio
import io
from decimal import Decimal

import pytest
from rich.console import Console

from dexarb.config.settings import ArbitrageConfig
from dexarb.core import ArbitrageEngine, DebounceScheduler, ExecutionGate, OpportunityStore
from dexarb.execution.types import TradeResult
from dexarb.monitoring.reporter import Reporter
from dexarb.system.logging import Logger


# ============================================================================
# AUTOUSE: QUIET CONSOLE
# ============================================================================


@pytest.fixture(autouse=True)
def silence_logger():
    """Keep Rich log lines out of test output."""
    Logger.set_silent(True)
    yield
    Logger.set_silent(False)


# ============================================================================
# ENGINE FIXTURES
# ============================================================================


@pytest.fixture
def fast_config():
    """Millisecond-scale timings so async tests stay quick."""
    return ArbitrageConfig(
        min_divergence_percent=1.0,
        debounce_delay_ms=20,
        execution_cooldown_ms=80,
        execution_hold_timeout_ms=2_000,
        trade_amount=Decimal("0.01"),
    )


@pytest.fixture
def report_console():
    """Rich console writing into a buffer."""
    return Console(file=io.StringIO(), width=240, color_system=None)


class HeldExecutor:
    """Executor that blocks until the test releases it."""

    def __init__(self, result: TradeResult = None):
        self.requests = []
        self.release = asyncio.Event()
        self.result = result or TradeResult(success=True, tx_id="sig-test")

    async def execute(self, request):
        self.requests.append(request)
        await self.release.wait()
        return self.result


@pytest.fixture
def held_executor():
    return HeldExecutor()


@pytest.fixture
def make_engine(fast_config, report_console):
    """Factory: fresh store/scheduler/gate/reporter per engine."""
    engines = []

    def _make(executor=None, quote_fetcher=None, config=None):
        cfg = config or fast_config
        store = OpportunityStore()
        engine = ArbitrageEngine(
            store=store,
            scheduler=DebounceScheduler(),
            gate=ExecutionGate(
                cooldown_ms=cfg.execution_cooldown_ms,
                hold_timeout_ms=cfg.execution_hold_timeout_ms,
            ),
            reporter=Reporter(store, min_percent=cfg.min_divergence_percent, console=report_console),
            executor=executor,
            quote_fetcher=quote_fetcher,
            config=cfg,
        )
        engines.append(engine)
        return engine

    yield _make

    for engine in engines:
        engine.gate.close()
