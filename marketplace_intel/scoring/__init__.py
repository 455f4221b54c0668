"""Scoring engines for rankings, inventory and seller financing"""

from .ranking import RankingPenaltyRequest, RankingResult, RankingScorer, RankingSignals, RankingSnapshot
from .inventory import InventoryForecast, InventoryForecaster, SalesWindows, StockStatus
from .financing import FinancingAssessment, FinancingInputs, FinancingScorer
from .offers import InvalidOfferTransition, OfferStatus

__all__ = [
    "RankingScorer",
    "RankingSignals",
    "RankingSnapshot",
    "RankingResult",
    "RankingPenaltyRequest",
    "InventoryForecaster",
    "InventoryForecast",
    "SalesWindows",
    "StockStatus",
    "FinancingScorer",
    "FinancingInputs",
    "FinancingAssessment",
    "InvalidOfferTransition",
    "OfferStatus",
]
