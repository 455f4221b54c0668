"""Financing eligibility scoring for sellers."""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from .normalize import ratio_percent, round_int


@dataclass
class FinancingInputs:
    """Trailing aggregates gathered for one store."""

    store_id: str
    sales_90d: float = 0.0
    orders_90d: int = 0
    returns_90d: int = 0
    risk_score: Optional[float] = None  # None when the store has no risk record
    completed_orders: int = 0  # lifetime


@dataclass
class FinancingAssessment:
    """Creditworthiness of one store."""

    store_id: str
    sales_90d: float
    return_rate: float
    risk_score: float
    reputation_score: float
    sales_norm: float
    eligibility_score: int
    trust_multiplier: float
    max_eligible_amount: int
    passes_gate: bool
    frozen: bool
    frozen_reason: Optional[str] = None

    @property
    def is_eligible(self) -> bool:
        return self.passes_gate and not self.frozen

    def to_row(self, calculated_at: datetime) -> dict:
        """Row for the seller_financing_scores table."""
        return {
            "store_id": self.store_id,
            "sales_90d": self.sales_90d,
            "return_rate": self.return_rate,
            "risk_score": self.risk_score,
            "reputation_score": self.reputation_score,
            "eligibility_score": self.eligibility_score,
            "max_eligible_amount": self.max_eligible_amount,
            "is_eligible": self.is_eligible,
            "frozen": self.frozen,
            "frozen_reason": self.frozen_reason,
            "last_calculated_at": calculated_at,
        }


class FinancingScorer:
    """Score sellers for revenue-based financing.

    eligibility = 0.4 * sales_norm + 0.3 * reputation - 0.2 * risk - 0.1 * return_rate

    where sales_norm scales 90-day sales against SALES_CEILING. The advance is
    30% of 90-day sales scaled by a trust multiplier earned through completed
    orders. Sellers at or above FREEZE_RISK_SCORE are frozen whatever their
    score.
    """

    WEIGHTS = {
        "sales": 0.4,
        "reputation": 0.3,
        "risk": 0.2,
        "return_rate": 0.1,
    }

    # (minimum completed orders, exclusive) -> multiplier
    TRUST_TIERS = ((100, 1.2), (50, 1.0), (20, 0.9))
    BASE_TRUST = 0.8

    SALES_CEILING = 5_000_000
    MIN_ELIGIBILITY_SCORE = 40
    MIN_SALES = 100_000
    MAX_RETURN_RATE = 15.0
    FREEZE_RISK_SCORE = 70.0
    DEFAULT_RISK_SCORE = 50.0
    ADVANCE_RATIO = 0.3
    MIN_OFFER_AMOUNT = 50_000
    REPAYMENT_PERCENTAGE = 15.0
    FEE_RATE = 0.08

    def __init__(self, config: Optional[Dict] = None):
        """Initialize financing scorer.

        Args:
            config: Optional configuration dictionary
        """
        if config:
            financing_config = config.get("scoring", {}).get("financing", {})
            self.SALES_CEILING = financing_config.get("sales_ceiling", self.SALES_CEILING)
            self.MIN_ELIGIBILITY_SCORE = financing_config.get("min_eligibility_score", self.MIN_ELIGIBILITY_SCORE)
            self.MIN_SALES = financing_config.get("min_sales", self.MIN_SALES)
            self.MAX_RETURN_RATE = financing_config.get("max_return_rate", self.MAX_RETURN_RATE)
            self.FREEZE_RISK_SCORE = financing_config.get("freeze_risk_score", self.FREEZE_RISK_SCORE)
            self.DEFAULT_RISK_SCORE = financing_config.get("default_risk_score", self.DEFAULT_RISK_SCORE)
            self.ADVANCE_RATIO = financing_config.get("advance_ratio", self.ADVANCE_RATIO)
            self.MIN_OFFER_AMOUNT = financing_config.get("min_offer_amount", self.MIN_OFFER_AMOUNT)
            self.REPAYMENT_PERCENTAGE = financing_config.get("repayment_percentage", self.REPAYMENT_PERCENTAGE)
            self.FEE_RATE = financing_config.get("fee_rate", self.FEE_RATE)

    def trust_multiplier(self, completed_orders: int) -> float:
        for threshold, multiplier in self.TRUST_TIERS:
            if completed_orders > threshold:
                return multiplier
        return self.BASE_TRUST

    def assess(self, inputs: FinancingInputs) -> FinancingAssessment:
        """Compute eligibility for one store.

        Args:
            inputs: Trailing aggregates for the store

        Returns:
            FinancingAssessment instance
        """
        sales_90d = inputs.sales_90d or 0.0
        return_rate = float(round_int(ratio_percent(inputs.returns_90d, inputs.orders_90d)))
        risk_score = self.DEFAULT_RISK_SCORE if inputs.risk_score is None else inputs.risk_score
        reputation = max(0.0, 100 - risk_score)
        sales_norm = min(sales_90d / self.SALES_CEILING * 100, 100.0)

        eligibility_score = round_int(
            sales_norm * self.WEIGHTS["sales"]
            + reputation * self.WEIGHTS["reputation"]
            - risk_score * self.WEIGHTS["risk"]
            - return_rate * self.WEIGHTS["return_rate"]
        )

        trust = self.trust_multiplier(inputs.completed_orders)
        max_eligible = round_int(sales_90d * self.ADVANCE_RATIO * trust)

        passes_gate = (
            eligibility_score >= self.MIN_ELIGIBILITY_SCORE
            and sales_90d >= self.MIN_SALES
            and return_rate < self.MAX_RETURN_RATE
        )
        frozen = risk_score >= self.FREEZE_RISK_SCORE

        return FinancingAssessment(
            store_id=inputs.store_id,
            sales_90d=sales_90d,
            return_rate=return_rate,
            risk_score=risk_score,
            reputation_score=reputation,
            sales_norm=sales_norm,
            eligibility_score=eligibility_score,
            trust_multiplier=trust,
            max_eligible_amount=max_eligible,
            passes_gate=passes_gate,
            frozen=frozen,
            frozen_reason="High risk score" if frozen else None,
        )

    def qualifies_for_offer(self, assessment: FinancingAssessment) -> bool:
        """Eligible, not frozen and above the minimum advance."""
        return assessment.is_eligible and assessment.max_eligible_amount >= self.MIN_OFFER_AMOUNT

    def offer_terms(self, assessment: FinancingAssessment) -> dict:
        """Terms of a new offer sized on the assessment."""
        amount = assessment.max_eligible_amount
        total_repayable = round_int(amount * (1 + self.FEE_RATE))
        return {
            "offered_amount": amount,
            "repayment_percentage": self.REPAYMENT_PERCENTAGE,
            "total_repayable": total_repayable,
            "remaining_balance": total_repayable,
        }
