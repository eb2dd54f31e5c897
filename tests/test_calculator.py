"""
Tests for DiscountCalculator: clamping, messages and per-promotion failure isolation.
"""
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation

import pytest

from kurta_promotions.core.exceptions import PromotionComputationError, UnsupportedPromotionKindError
from kurta_promotions.services.promotions.calculator import DiscountCalculator, promotion_message
from kurta_promotions.services.promotions.domain import PromotionKind
from kurta_promotions.services.promotions.strategies import STRATEGIES, percentage_discount


class TestCompute:

    def test_result_carries_allocations(self, make_line, make_context, make_promotion):
        context = make_context([make_line("p1", price="40"), make_line("p2", price="60")])
        result = DiscountCalculator().compute(make_promotion(value="10"), context)

        assert result.promotion_id == "promo-1"
        assert result.kind == PromotionKind.PERCENTAGE
        assert result.discount_amount == Decimal("10.00")
        assert result.original_total == Decimal("100")
        assert result.message == "10% off selected items"

    def test_max_discount_caps_total(self, make_line, make_context, make_promotion):
        context = make_context([make_line("p1", price="100")])
        promotion = make_promotion(value="50", max_discount_amount="20")
        result = DiscountCalculator().compute(promotion, context)
        assert result.discount_amount == Decimal("20")

    def test_zero_cap_is_a_real_cap(self, make_line, make_context, make_promotion):
        context = make_context([make_line("p1", price="100")])
        result = DiscountCalculator().compute(make_promotion(max_discount_amount="0"), context)
        assert result.discount_amount == Decimal("0")

    def test_discount_never_exceeds_discounted_lines(self, make_line, make_context, make_promotion):
        def overshoot(promotion, context, quantum):
            total, allocations = percentage_discount(promotion, context, quantum)
            return total * 3, allocations

        calculator = DiscountCalculator(strategies={**STRATEGIES, PromotionKind.PERCENTAGE: overshoot})
        context = make_context([make_line("p1", price="10")])
        result = calculator.compute(make_promotion(value="100"), context)
        assert result.discount_amount == Decimal("10")

    def test_negative_total_floored_at_zero(self, make_line, make_context, make_promotion):
        def negative(promotion, context, quantum):
            return Decimal("-5"), []

        calculator = DiscountCalculator(strategies={**STRATEGIES, PromotionKind.PERCENTAGE: negative})
        result = calculator.compute(make_promotion(), make_context([make_line("p1")]))
        assert result.discount_amount == Decimal("0")

    def test_arithmetic_failure_wrapped(self, make_line, make_context, make_promotion):
        def bad_math(promotion, context, quantum):
            raise InvalidOperation("quantize result has too many digits")

        calculator = DiscountCalculator(strategies={**STRATEGIES, PromotionKind.PERCENTAGE: bad_math})
        with pytest.raises(PromotionComputationError) as exc_info:
            calculator.compute(make_promotion(), make_context([make_line("p1")]))
        assert exc_info.value.code == "PROMOTION_COMPUTATION_FAILED"
        assert isinstance(exc_info.value.__cause__, InvalidOperation)

    def test_missing_strategy(self, make_line, make_context, make_promotion):
        calculator = DiscountCalculator(strategies={PromotionKind.PERCENTAGE: percentage_discount})
        with pytest.raises(UnsupportedPromotionKindError) as exc_info:
            calculator.compute(make_promotion(kind="fixed_amount"), make_context([make_line("p1")]))
        assert exc_info.value.details["promotion_id"] == "promo-1"


class TestEvaluate:

    def test_skips_non_qualifying(self, make_line, make_context, make_promotion, now):
        promotions = [
            make_promotion("auto", value="10"),
            make_promotion("big-spender", value="20", min_purchase_amount="500"),
        ]
        results = DiscountCalculator().evaluate(promotions, make_context([make_line("p1")]), now)
        assert [r.promotion_id for r in results] == ["auto"]

    def test_broken_promotion_dropped_others_kept(self, make_line, make_context, make_promotion, now, caplog):
        promotions = [
            make_promotion("broken", kind="tier_discount"),
            make_promotion("fine", value="10"),
        ]
        with caplog.at_level(logging.ERROR, logger="kurta_promotions.services.promotions.calculator"):
            results = DiscountCalculator().evaluate(promotions, make_context([make_line("p1")]), now)

        assert [r.promotion_id for r in results] == ["fine"]
        assert "Dropping promotion broken" in caplog.text

    def test_out_of_range_percentage_dropped_not_clamped(self, make_line, make_context, make_promotion, now):
        promotions = [
            make_promotion("too-generous", value="150"),
            make_promotion("negative", value="-5"),
            make_promotion("fine", value="10"),
        ]
        results = DiscountCalculator().evaluate(promotions, make_context([make_line("p1", price="100")]), now)

        assert [r.promotion_id for r in results] == ["fine"]
        assert results[0].discount_amount == Decimal("10.00")

    def test_strategy_crash_is_isolated(self, make_line, make_context, make_promotion, now):
        def crash(promotion, context, quantum):
            raise RuntimeError("boom")

        calculator = DiscountCalculator(strategies={**STRATEGIES, PromotionKind.FIXED_AMOUNT: crash})
        promotions = [make_promotion("a", kind="fixed_amount"), make_promotion("b")]
        results = calculator.evaluate(promotions, make_context([make_line("p1")]), now)
        assert [r.promotion_id for r in results] == ["b"]

    def test_naive_window_dropped(self, make_line, make_context, make_promotion, now):
        promotions = [make_promotion("naive", starts_at=datetime(2024, 1, 1)), make_promotion("aware")]
        results = DiscountCalculator().evaluate(promotions, make_context([make_line("p1")]), now)
        assert [r.promotion_id for r in results] == ["aware"]


class TestPromotionMessage:

    def test_percentage(self, make_promotion):
        assert promotion_message(make_promotion(value="12.5"), Decimal("1")) == "12.5% off selected items"

    def test_fixed_amount(self, make_promotion):
        promotion = make_promotion(kind="fixed_amount", value="5")
        assert promotion_message(promotion, Decimal("5")) == "5.00 off your purchase"

    def test_other_kinds(self, make_promotion):
        assert promotion_message(make_promotion(kind="buy_x_get_y"), Decimal("0")) == "Buy X get Y discount applied"
        assert promotion_message(make_promotion(kind="free_shipping"), Decimal("0")) == "Free shipping applied"
        assert promotion_message(make_promotion(kind="tier_discount"), Decimal("0")) == "Volume discount applied"
