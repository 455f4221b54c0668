"""Ranking scorer computing the marketplace composite rank of products."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from loguru import logger

from .normalize import clamp, ratio_percent, round_half_up, round_int


@dataclass(frozen=True)
class RankingSnapshot:
    """Ranking row as stored before the current run."""

    product_id: str
    score: int
    previous_score: int
    trending_badge: bool
    calculated_at: Optional[datetime] = None


@dataclass
class RankingSignals:
    """Raw 30-day signals gathered for one product."""

    product_id: str
    store_id: str
    units_sold: int = 0
    units_returned: int = 0
    page_views: int = 0
    add_to_cart: int = 0
    avg_rating: float = 0.0
    review_count: int = 0
    seller_sla: float = 100.0
    risk_penalty: float = 0.0

    @property
    def conversion_rate(self) -> float:
        return ratio_percent(self.add_to_cart, self.page_views)

    @property
    def return_rate(self) -> float:
        return ratio_percent(self.units_returned, self.units_sold + self.units_returned)


@dataclass(frozen=True)
class RankingPenaltyRequest:
    """Command asking the ranking owner to lower a product's score."""

    product_id: str
    points: Optional[int] = None  # None: the ranking owner's configured penalty
    reason: str = "oversell_risk"


@dataclass
class RankingResult:
    """Outcome of scoring one product."""

    product_id: str
    store_id: str
    score: int
    previous_score: int
    stored_previous_score: int
    trending_badge: bool
    sales_30d: int
    review_count: int
    components: Dict[str, float] = field(default_factory=dict)

    @property
    def delta(self) -> int:
        return self.score - self.previous_score

    def to_row(self, calculated_at: datetime) -> dict:
        """Row for the product_ranking_scores table."""
        return {
            "product_id": self.product_id,
            "score": self.score,
            "sales_30d": self.sales_30d,
            "sales_weight": round_half_up(self.components["sales"], 2),
            "conversion_rate": round_half_up(self.components["conversion"], 2),
            "rating": round_half_up(self.components["rating"], 2),
            "review_count": self.review_count,
            "seller_sla": round_half_up(self.components["seller_sla"], 2),
            "return_rate": round_half_up(self.components["return_rate"], 2),
            "risk_penalty": round_half_up(self.components["risk_penalty"], 2),
            "previous_score": self.stored_previous_score,
            "trending_badge": self.trending_badge,
            "last_calculated_at": calculated_at,
        }


class RankingScorer:
    """Combine sales, conversion, rating, SLA, returns and risk into a 0-100 rank.

    Weighting:
    - Sales: +40% (relative to the best seller in the same batch)
    - Conversion: +20%
    - Rating: +15%
    - Seller SLA: +15%
    - Return rate: -5%
    - Risk penalty: -5%

    The trending badge is granted on a jump of TRENDING_THRESHOLD points and
    kept while the score does not decline. A fall of DROP_THRESHOLD points or
    more is reported to the seller.
    """

    WEIGHTS = {
        "sales": 0.40,
        "conversion": 0.20,
        "rating": 0.15,
        "seller_sla": 0.15,
        "return_rate": 0.05,
        "risk_penalty": 0.05,
    }
    NEGATIVE_COMPONENTS = ("return_rate", "risk_penalty")

    TRENDING_THRESHOLD = 15
    DROP_THRESHOLD = -20
    OVERSELL_PENALTY = 10

    def __init__(self, config: Optional[Dict] = None):
        """Initialize ranking scorer.

        Args:
            config: Optional configuration dictionary
        """
        if config:
            ranking_config = config.get("scoring", {}).get("ranking", {})
            self.WEIGHTS = ranking_config.get("weights", self.WEIGHTS)
            self.TRENDING_THRESHOLD = ranking_config.get("trending_threshold", self.TRENDING_THRESHOLD)
            self.DROP_THRESHOLD = ranking_config.get("drop_threshold", self.DROP_THRESHOLD)
            self.OVERSELL_PENALTY = ranking_config.get("oversell_penalty", self.OVERSELL_PENALTY)

    @staticmethod
    def batch_max_sales(signals: List[RankingSignals]) -> int:
        """Best seller of the batch, floored at 1 so an idle batch scores 0."""
        return max([1] + [s.units_sold for s in signals])

    def normalize(self, signals: RankingSignals, max_sales: int) -> Dict[str, float]:
        """Scale every raw signal to 0-100.

        Args:
            signals: Raw product signals
            max_sales: Batch-wide maximum of units sold

        Returns:
            Normalized components keyed like WEIGHTS
        """
        return {
            "sales": clamp(signals.units_sold / max_sales * 100),
            "conversion": clamp(signals.conversion_rate),
            "rating": clamp((signals.avg_rating or 0) / 5 * 100),
            "seller_sla": clamp(signals.seller_sla),
            "return_rate": clamp(signals.return_rate),
            "risk_penalty": clamp(signals.risk_penalty),
        }

    def composite(self, components: Dict[str, float]) -> int:
        """Weighted sum of normalized components, rounded and bounded to 0-100."""
        total = 0.0
        for name, weight in self.WEIGHTS.items():
            value = components.get(name, 0.0)
            if name in self.NEGATIVE_COMPONENTS:
                total -= value * weight
            else:
                total += value * weight
        return int(clamp(round_int(total)))

    def is_trending(self, delta: int, was_trending: bool) -> bool:
        return delta >= self.TRENDING_THRESHOLD or (was_trending and delta >= 0)

    def score_product(
        self,
        signals: RankingSignals,
        max_sales: int,
        previous: Optional[RankingSnapshot] = None,
    ) -> RankingResult:
        """Score one product against the previous snapshot.

        Args:
            signals: Raw product signals
            max_sales: Batch-wide maximum of units sold
            previous: Stored ranking row, if any

        Returns:
            RankingResult instance
        """
        components = self.normalize(signals, max_sales)
        score = self.composite(components)

        previous_score = previous.score if previous else 0
        was_trending = previous.trending_badge if previous else False
        delta = score - previous_score

        # An unchanged score keeps the last real change as its baseline
        if previous and score == previous.score:
            stored_previous = previous.previous_score
        else:
            stored_previous = previous_score

        return RankingResult(
            product_id=signals.product_id,
            store_id=signals.store_id,
            score=score,
            previous_score=previous_score,
            stored_previous_score=stored_previous,
            trending_badge=self.is_trending(delta, was_trending),
            sales_30d=signals.units_sold,
            review_count=signals.review_count or 0,
            components=components,
        )

    def score_batch(
        self,
        batch: List[RankingSignals],
        snapshot: Dict[str, RankingSnapshot],
    ) -> List[RankingResult]:
        """Score a batch; a product that fails is logged and skipped.

        Args:
            batch: Signals for every product in the run
            snapshot: Stored ranking rows keyed by product id

        Returns:
            Results for the products that scored
        """
        max_sales = self.batch_max_sales(batch)
        results = []

        for signals in batch:
            try:
                results.append(self.score_product(signals, max_sales, snapshot.get(signals.product_id)))
            except Exception as e:
                logger.error(f"Error ranking product {signals.product_id}: {e}")

        return results

    def is_sharp_drop(self, result: RankingResult) -> bool:
        return result.delta <= self.DROP_THRESHOLD

    def penalty_points(self, request: RankingPenaltyRequest) -> int:
        """Points to deduct for a penalty request."""
        return self.OVERSELL_PENALTY if request.points is None else request.points
