"""
Opportunity Reporter
====================
Renders the ranked opportunity table, but only when something in it changed
since the last render.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from dexarb.core.opportunity_store import Opportunity, OpportunitySnapshot, OpportunityStore
from dexarb.feeds.price_update import Venue
from dexarb.system.logging import Logger


def short_id(value: Optional[str]) -> str:
    """abcdef...wxyz style for pool ids and mints."""
    if not value:
        return "N/A"
    if len(value) <= 8:
        return value
    return f"{value[:6]}...{value[-4:]}"


class Reporter:
    """
    Keeps its own last-rendered snapshot per asset. This is separate from the
    engine's previous-value snapshot: several real changes can happen
    between two renders.
    """

    def __init__(
        self,
        store: OpportunityStore,
        min_percent: float = 1.0,
        console: Optional[Console] = None,
        max_rows: int = 20,
    ) -> None:
        self.store = store
        self.min_percent = min_percent
        self.console = console or Logger.console()
        self.max_rows = max_rows
        self._last_rendered: Dict[str, OpportunitySnapshot] = {}
        self.render_count = 0
        self.notifications = 0

    def on_opportunity_changed(self, opportunity: Opportunity) -> bool:
        """Engine callback after a real change."""
        self.notifications += 1
        return self.render()

    def has_changed_since_render(self, opportunity: Opportunity) -> bool:
        last = self._last_rendered.get(opportunity.asset)
        if last is None:
            return True
        return opportunity.snapshot().differs_from(last)

    def render(self) -> bool:
        """Print the full ranked table if any listed asset changed. Returns True if printed."""
        opportunities = self.store.ranked(self.min_percent)
        if not opportunities:
            return False
        if not any(self.has_changed_since_render(opp) for opp in opportunities):
            return False

        self.console.print(self.build_table(opportunities[: self.max_rows]))
        self.console.print(f"Total opportunities: {len(opportunities)}\n")

        for opp in opportunities:
            self._last_rendered[opp.asset] = opp.snapshot()
        self.render_count += 1
        return True

    def build_table(self, opportunities: List[Opportunity]) -> Table:
        table = Table(box=box.SQUARE, expand=False, title="⚖️ Cross-Venue Opportunities")
        table.add_column("No", justify="right", style="dim")
        table.add_column("Mint (with Pool IDs)", style="cyan", no_wrap=True)
        for venue in Venue:
            table.add_column(f"{venue.label} Price", justify="right")
        table.add_column("Diff Price", justify="right")
        table.add_column("Profit %", justify="right")
        table.add_column("Updated Time")

        for idx, opp in enumerate(opportunities, start=1):
            mint_lines = [opp.asset] + [
                f"{venue.label} Pool: {short_id(opp.venue_pool_ids.get(venue))}" for venue in Venue
            ]
            prices = [
                str(opp.venue_prices[venue]) if venue in opp.venue_prices else "N/A"
                for venue in Venue
            ]
            diff = f"{opp.price_difference:.12f}" if opp.price_difference is not None else "N/A"
            pct = opp.divergence_percent
            profit_color = "green" if pct is not None and pct >= self.min_percent else "white"
            profit = f"[{profit_color}]{pct:.2f}%[/]" if pct is not None else "N/A"
            table.add_row(
                str(idx),
                "\n".join(mint_lines),
                *prices,
                diff,
                profit,
                opp.last_updated.isoformat(timespec="milliseconds"),
            )
        return table

    def summary(self) -> Optional[str]:
        """One-line digest for the periodic monitor."""
        opportunities = self.store.ranked(self.min_percent)
        if not opportunities:
            return None
        best = opportunities[0]
        return (
            f"🔥 {len(opportunities)} opportunities ≥ {self.min_percent}% | "
            f"best {short_id(best.asset)} {best.divergence_percent:.2f}%"
        )

    def forget(self, asset: str) -> None:
        self._last_rendered.pop(asset, None)
