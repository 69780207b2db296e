"""
Opportunity Store Unit Tests
============================
Divergence math, data states, ranking and snapshot comparison.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from dexarb.core.opportunity_store import (
    DataState,
    Opportunity,
    OpportunitySnapshot,
    OpportunityStore,
)
from dexarb.feeds.price_update import Venue, utc_now


@pytest.fixture
def store():
    return OpportunityStore()


class TestDivergenceMath:
    """price_difference / divergence_percent derivation."""

    def test_two_venues_diff_over_average(self, store):
        """1.00 vs 1.05 -> 0.05 / 1.025 = 4.878%."""
        store.upsert("X", Venue.PUMPSWAP, Decimal("1.00"), "pool-a")
        opp = store.upsert("X", Venue.METEORA_DLMM, Decimal("1.05"), "pool-b")

        assert opp.price_difference == Decimal("0.05")
        assert opp.divergence_percent == pytest.approx(4.878, abs=1e-3)

    def test_single_venue_has_no_divergence(self, store):
        opp = store.upsert("Y", Venue.PUMPSWAP, Decimal("2.00"), "pool-a")

        assert opp.price_difference is None
        assert opp.divergence_percent is None
        assert opp.state is DataState.PARTIAL_DATA
        assert not opp.has_divergence

    def test_three_venues_use_max_and_min(self, store):
        store.upsert("X", Venue.PUMPSWAP, Decimal("1.00"), "a")
        store.upsert("X", Venue.METEORA_DAMM_V2, Decimal("1.02"), "b")
        opp = store.upsert("X", Venue.METEORA_DLMM, Decimal("0.98"), "c")

        assert opp.price_difference == Decimal("0.04")
        assert opp.divergence_percent == pytest.approx(4.0)
        assert opp.state is DataState.FULL_DATA

    def test_divergence_is_never_negative(self, store):
        store.upsert("X", Venue.PUMPSWAP, Decimal("2"), "a")
        opp = store.upsert("X", Venue.METEORA_DLMM, Decimal("1"), "b")
        assert opp.divergence_percent > 0

    def test_equal_prices_give_zero(self, store):
        store.upsert("X", Venue.PUMPSWAP, Decimal("3"), "a")
        opp = store.upsert("X", Venue.METEORA_DLMM, Decimal("3"), "b")
        assert opp.divergence_percent == 0.0

    def test_non_positive_total_leaves_divergence_undefined(self):
        opp = Opportunity(asset="X", venue_prices={
            Venue.PUMPSWAP: Decimal("0"),
            Venue.METEORA_DLMM: Decimal("0"),
        })
        opp.recompute()
        assert opp.divergence_percent is None
        assert opp.price_difference is None


class TestUpsert:
    """Create-or-mutate semantics."""

    def test_creates_record_on_first_update(self, store):
        assert "X" not in store
        store.upsert("X", Venue.PUMPSWAP, Decimal("1"), "pool-a")
        assert "X" in store
        assert len(store) == 1

    def test_keeps_other_venue_prices(self, store):
        store.upsert("X", Venue.PUMPSWAP, Decimal("1"), "a")
        store.upsert("X", Venue.METEORA_DLMM, Decimal("1.1"), "b")
        opp = store.upsert("X", Venue.PUMPSWAP, Decimal("1.05"), "a")

        assert opp.venue_prices == {
            Venue.PUMPSWAP: Decimal("1.05"),
            Venue.METEORA_DLMM: Decimal("1.1"),
        }

    def test_empty_pool_id_does_not_overwrite(self, store):
        store.upsert("X", Venue.PUMPSWAP, Decimal("1"), "pool-a")
        opp = store.upsert("X", Venue.PUMPSWAP, Decimal("1.01"), "")
        assert opp.venue_pool_ids[Venue.PUMPSWAP] == "pool-a"

    def test_identical_update_only_moves_timestamp(self, store):
        """Same (asset, venue, price, pool) twice: timestamp moves, divergence does not."""
        t0 = utc_now()
        store.upsert("X", Venue.PUMPSWAP, Decimal("1.00"), "a", t0)
        opp = store.upsert("X", Venue.METEORA_DLMM, Decimal("1.05"), "b", t0)
        before = opp.snapshot()
        pct = opp.divergence_percent

        later = t0 + timedelta(seconds=5)
        opp = store.upsert("X", Venue.METEORA_DLMM, Decimal("1.05"), "b", later)

        assert opp.last_updated == later
        assert opp.divergence_percent == pct
        assert not opp.snapshot().differs_from(before)

    def test_tracks_update_time_per_venue(self, store):
        t0 = utc_now()
        later = t0 + timedelta(seconds=3)
        store.upsert("X", Venue.PUMPSWAP, Decimal("1.00"), "a", t0)
        opp = store.upsert("X", Venue.METEORA_DLMM, Decimal("1.05"), "b", later)

        assert opp.venue_updated_at == {Venue.PUMPSWAP: t0, Venue.METEORA_DLMM: later}
        assert opp.last_updated == later


class TestRanking:
    """ranked() filters undefined divergence and sorts best first."""

    def test_partial_data_never_ranked(self, store):
        store.upsert("Y", Venue.PUMPSWAP, Decimal("2.00"), "a")
        assert store.ranked(0.0) == []

    def test_threshold_is_inclusive(self, store):
        store.upsert("X", Venue.PUMPSWAP, Decimal("1"), "a")
        opp = store.upsert("X", Venue.METEORA_DLMM, Decimal("1.05"), "b")
        assert store.ranked(opp.divergence_percent) == [opp]

    def test_sorted_descending(self, store):
        store.upsert("A", Venue.PUMPSWAP, Decimal("1"), "a")
        store.upsert("A", Venue.METEORA_DLMM, Decimal("1.02"), "b")
        store.upsert("B", Venue.PUMPSWAP, Decimal("1"), "a")
        store.upsert("B", Venue.METEORA_DLMM, Decimal("1.10"), "b")
        store.upsert("C", Venue.PUMPSWAP, Decimal("1"), "a")
        store.upsert("C", Venue.METEORA_DLMM, Decimal("1.001"), "b")

        assert [o.asset for o in store.ranked(1.0)] == ["B", "A"]

    def test_best_pair_buys_low_sells_high(self, store):
        store.upsert("X", Venue.PUMPSWAP, Decimal("1.05"), "a")
        store.upsert("X", Venue.METEORA_DAMM_V2, Decimal("1.00"), "b")
        opp = store.upsert("X", Venue.METEORA_DLMM, Decimal("1.02"), "c")
        assert opp.best_pair() == (Venue.METEORA_DAMM_V2, Venue.PUMPSWAP)


class TestStaleness:

    def test_stale_assets_and_remove(self, store):
        now = utc_now()
        store.upsert("OLD", Venue.PUMPSWAP, Decimal("1"), "a", now - timedelta(seconds=120))
        store.upsert("NEW", Venue.PUMPSWAP, Decimal("1"), "a", now)

        assert store.stale_assets(60, now=now) == ["OLD"]
        assert store.remove("OLD") is not None
        assert store.get("OLD") is None
        assert store.remove("OLD") is None


class TestSnapshot:
    """Real-change detection between snapshots."""

    def test_empty_vs_one_price_differs(self):
        opp = Opportunity(asset="X", venue_prices={Venue.PUMPSWAP: Decimal("1")})
        assert opp.snapshot().differs_from(OpportunitySnapshot.empty())

    def test_tiny_divergence_move_is_noise(self):
        a = OpportunitySnapshot(((Venue.PUMPSWAP, Decimal("1")),), 4.0)
        b = OpportunitySnapshot(((Venue.PUMPSWAP, Decimal("1")),), 4.0 + 1e-12)
        assert not a.differs_from(b)

    def test_defined_vs_undefined_differs(self):
        a = OpportunitySnapshot(((Venue.PUMPSWAP, Decimal("1")),), None)
        b = OpportunitySnapshot(((Venue.PUMPSWAP, Decimal("1")),), 0.0)
        assert a.differs_from(b)

    def test_to_dict_serializes_decimals(self, store):
        store.upsert("X", Venue.PUMPSWAP, Decimal("1.00"), "a")
        data = store.upsert("X", Venue.METEORA_DLMM, Decimal("1.05"), "b").to_dict()
        assert data["venue_prices"]["PUMPSWAP"] == "1.00"
        assert data["state"] == "FULL_DATA"
