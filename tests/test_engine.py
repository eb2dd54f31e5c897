"""
End-to-end tests for PromotionEngine.evaluate.

Covers the checkout scenarios the storefront relies on plus the
properties every evaluation must keep (determinism, caps, exclusivity).
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from kurta_promotions.schemas.promotion import EvaluateResponse
from kurta_promotions.services.promotions import (
    BxgyRule,
    PromotionEngine,
    PromotionExclusion,
    PromotionTarget,
    PromotionTier,
    TargetType,
)


@pytest.fixture
def engine() -> PromotionEngine:
    return PromotionEngine()


class TestCheckoutScenarios:

    def test_percentage_over_minimum(self, engine, make_line, make_context, make_promotion, now):
        context = make_context([make_line("kurta", price="100")], subtotal="100")
        promotion = make_promotion("ten-off", value="10", min_purchase_amount="50", is_stackable=True)

        outcome = engine.evaluate([promotion], context, now=now)

        assert len(outcome.applicable_promotions) == 1
        assert outcome.applicable_promotions[0].discount_amount == Decimal("10.00")
        assert outcome.total_discount == Decimal("10.00")

    def test_below_minimum_is_not_an_error(self, engine, make_line, make_context, make_promotion, now):
        context = make_context([make_line("kurta", price="40")], subtotal="40")
        promotion = make_promotion("ten-off", value="10", min_purchase_amount="50", is_stackable=True)

        outcome = engine.evaluate([promotion], context, now=now)

        assert outcome.applicable_promotions == ()
        assert outcome.total_discount == Decimal("0")

    def test_exclusive_promotion_beats_stackable(self, engine, make_line, make_context, make_promotion, now):
        context = make_context([make_line("kurta", price="100")], subtotal="100")
        exclusive = make_promotion("fifteen", value="15", priority=5, is_stackable=False)
        stackable = make_promotion("five-flat", kind="fixed_amount", value="5", priority=1, is_stackable=True)

        outcome = engine.evaluate([stackable, exclusive], context, now=now)

        assert [r.promotion_id for r in outcome.applicable_promotions] == ["fifteen"]
        assert outcome.total_discount == Decimal("15.00")

    def test_buy_two_get_one_half_off(self, engine, make_line, make_context, make_promotion, now):
        context = make_context([
            make_line("A", price="10", quantity=5),
            make_line("B", price="8", quantity=3),
        ])
        promotion = make_promotion(
            "bxgy",
            kind="buy_x_get_y",
            value="0",
            bxgy_rules=[BxgyRule("A", 2, "B", 1, Decimal("50"))],
        )

        outcome = engine.evaluate([promotion], context, now=now)

        assert outcome.total_discount == Decimal("8.00")
        assert outcome.applicable_promotions[0].message == "Buy X get Y discount applied"

    def test_category_exclusion_overrides_product_target(self, engine, make_line, make_context, make_promotion, now):
        context = make_context([make_line("kurta", price="100", categories=["clearance"])])
        promotion = make_promotion(
            targets=[PromotionTarget(TargetType.PRODUCT, "kurta")],
            exclusions=[PromotionExclusion(TargetType.CATEGORY, "clearance")],
        )

        outcome = engine.evaluate([promotion], context, now=now)

        assert outcome.total_discount == Decimal("0")

    def test_tier_reached_by_combined_quantity(self, engine, make_line, make_context, make_promotion, now):
        context = make_context([make_line("dupatta", price="10", quantity=12)])
        promotion = make_promotion(
            kind="tier_discount",
            value="0",
            tiers=[PromotionTier(5, Decimal("10")), PromotionTier(10, Decimal("20"))],
        )

        outcome = engine.evaluate([promotion], context, now=now)

        assert outcome.total_discount == Decimal("24.00")
        assert outcome.applicable_promotions[0].message == "Volume discount applied"

    def test_stackables_combine_in_priority_order(self, engine, make_line, make_context, make_promotion, now):
        context = make_context([make_line("kurta", price="100")])
        promotions = [
            make_promotion("pct", value="10", priority=1, is_stackable=True),
            make_promotion("flat", kind="fixed_amount", value="5", priority=3, is_stackable=True),
        ]

        outcome = engine.evaluate(promotions, context, now=now)

        assert [r.promotion_id for r in outcome.applicable_promotions] == ["flat", "pct"]
        assert outcome.total_discount == Decimal("15.00")

    def test_free_shipping_flag(self, engine, make_line, make_context, make_promotion, now):
        context = make_context([make_line("kurta", price="100")])
        promotions = [
            make_promotion("ship", kind="free_shipping", value="0", is_stackable=True),
            make_promotion("pct", value="10", is_stackable=True),
        ]

        outcome = engine.evaluate(promotions, context, now=now)

        assert outcome.free_shipping is True
        assert outcome.total_discount == Decimal("10.00")

    def test_unresolved_product_not_discounted(self, engine, make_line, make_context, make_promotion, now):
        context = make_context([make_line("ghost", price="50", resolved=False), make_line("kurta", price="50")])
        outcome = engine.evaluate([make_promotion(value="10")], context, now=now)
        assert outcome.total_discount == Decimal("5.00")

    def test_empty_cart(self, engine, make_context, make_promotion, now):
        outcome = engine.evaluate([make_promotion()], make_context([]), now=now)
        assert outcome.total_discount == Decimal("0")


class TestEvaluationProperties:

    def _promotions(self, make_promotion):
        return [
            make_promotion("pct", value="33", is_stackable=True, priority=2),
            make_promotion("flat", kind="fixed_amount", value="7.77", is_stackable=True),
            make_promotion("capped", value="90", max_discount_amount="3", is_stackable=True),
            make_promotion(
                "tier", kind="tier_discount", is_stackable=True,
                tiers=[PromotionTier(2, Decimal("5"))],
            ),
        ]

    def _context(self, make_line, make_context):
        return make_context([
            make_line("a", price="19.99", quantity=2),
            make_line("b", price="5.01", quantity=1, categories=["sale"]),
            make_line("c", price="0.99", quantity=7),
        ])

    def test_same_inputs_same_outcome(self, engine, make_line, make_context, make_promotion, now):
        promotions = self._promotions(make_promotion)
        context = self._context(make_line, make_context)

        first = engine.evaluate(promotions, context, now=now)
        second = engine.evaluate(promotions, context, now=now)

        assert first == second
        assert (
            EvaluateResponse.from_outcome(first).model_dump_json()
            == EvaluateResponse.from_outcome(second).model_dump_json()
        )

    def test_each_discount_within_bounds(self, engine, make_line, make_context, make_promotion, now):
        promotions = self._promotions(make_promotion)
        outcome = engine.evaluate(promotions, self._context(make_line, make_context), now=now)
        by_id = {p.id: p for p in promotions}

        assert len(outcome.applicable_promotions) == 4
        for result in outcome.applicable_promotions:
            assert Decimal("0") <= result.discount_amount <= result.original_total
            cap = by_id[result.promotion_id].max_discount_amount
            if cap is not None:
                assert result.discount_amount <= cap

    def test_fixed_allocations_conserve_value(self, engine, make_line, make_context, make_promotion, now):
        promotion = make_promotion("flat", kind="fixed_amount", value="7.77")
        outcome = engine.evaluate([promotion], self._context(make_line, make_context), now=now)

        result = outcome.applicable_promotions[0]
        assert result.discount_amount == Decimal("7.77")
        assert sum(a.discount_amount for a in result.allocations) == Decimal("7.77")

    def test_total_is_sum_of_applied(self, engine, make_line, make_context, make_promotion, now):
        outcome = engine.evaluate(
            self._promotions(make_promotion), self._context(make_line, make_context), now=now
        )
        assert outcome.total_discount == sum(r.discount_amount for r in outcome.applicable_promotions)

    def test_at_most_one_non_stackable(self, engine, make_line, make_context, make_promotion, now):
        promotions = self._promotions(make_promotion) + [
            make_promotion("solo-1", value="5", priority=1),
            make_promotion("solo-2", value="5", priority=4),
        ]
        outcome = engine.evaluate(promotions, self._context(make_line, make_context), now=now)
        assert [r.promotion_id for r in outcome.applicable_promotions] == ["solo-2"]


class TestEngineConfiguration:

    def test_samples_clock_when_now_missing(self, engine, make_line, make_context, make_promotion):
        outcome = engine.evaluate([make_promotion()], make_context([make_line("p1")]))

        assert outcome.evaluated_at is not None
        assert outcome.evaluated_at.tzinfo is not None
        assert outcome.evaluated_at <= datetime.now(timezone.utc)

    def test_zero_decimal_currency(self, make_line, make_context, make_promotion, now):
        engine = PromotionEngine.for_currency(0)
        context = make_context([make_line("p1", price="15")])

        outcome = engine.evaluate([make_promotion(value="10")], context, now=now)

        assert outcome.total_discount == Decimal("2")
