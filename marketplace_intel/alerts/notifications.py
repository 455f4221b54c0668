"""Seller notification payloads emitted by the scorers."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..scoring.financing import FinancingAssessment
from ..scoring.inventory import InventoryForecast
from ..scoring.normalize import round_int
from ..scoring.ranking import RankingResult


class NotificationDraft(BaseModel):
    """Candidate notification, keyed by (type, subject_id) for dedup."""

    store_id: str
    type: str  # ranking, inventory, financing, risk
    subject_id: str
    title: str
    body: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def dedup_key(self) -> tuple[str, str]:
        return (self.type, self.subject_id)

    def to_row(self) -> dict:
        """Row for the notifications table; metadata always carries subject_id."""
        return {
            "store_id": self.store_id,
            "type": self.type,
            "title": self.title,
            "body": self.body,
            "metadata_": {**self.metadata, "subject_id": self.subject_id},
            "created_at": self.created_at,
        }


def ranking_drop(result: RankingResult, now: Optional[datetime] = None) -> NotificationDraft:
    return NotificationDraft(
        store_id=result.store_id,
        type="ranking",
        subject_id=result.product_id,
        title=f"Ranking score dropped for product {result.product_id}",
        body=(
            f"The ranking score fell by {abs(result.delta)} points "
            f"({result.previous_score} -> {result.score}). Check your service quality."
        ),
        metadata={
            "product_id": result.product_id,
            "old_score": result.previous_score,
            "new_score": result.score,
            "delta": result.delta,
        },
        created_at=now or datetime.utcnow(),
    )


def low_stock(forecast: InventoryForecast, now: Optional[datetime] = None) -> NotificationDraft:
    return NotificationDraft(
        store_id=forecast.store_id,
        type="inventory",
        subject_id=forecast.product_id,
        title=f"Estimated stockout in {round_int(forecast.days_until_stockout)} days",
        body=(
            f"Product {forecast.product_id} has {forecast.stock} units left. "
            f"Recommended restock: {forecast.recommended_stock_level} units."
        ),
        metadata={
            "product_id": forecast.product_id,
            "stock": forecast.stock,
            "days_until_stockout": forecast.days_until_stockout,
            "recommended": forecast.recommended_stock_level,
        },
        created_at=now or datetime.utcnow(),
    )


def financing_offer(assessment: FinancingAssessment, offer_id: str, now: Optional[datetime] = None) -> NotificationDraft:
    return NotificationDraft(
        store_id=assessment.store_id,
        type="financing",
        subject_id=assessment.store_id,
        title="Financing offer available",
        body=(
            f"You are eligible for financing of {assessment.max_eligible_amount:,}. "
            "Open your Capital space to review the offer."
        ),
        metadata={"offer_id": offer_id, "max_amount": assessment.max_eligible_amount},
        created_at=now or datetime.utcnow(),
    )


def financing_default(store_id: str, offer_id: str, missed_cycles: int, now: Optional[datetime] = None) -> NotificationDraft:
    return NotificationDraft(
        store_id=store_id,
        type="risk",
        subject_id=offer_id,
        title="Financing in default",
        body=f"Your financing was marked as defaulted after {missed_cycles} cycles without repayment.",
        metadata={"offer_id": offer_id, "missed_cycles": missed_cycles},
        created_at=now or datetime.utcnow(),
    )
