"""Inventory forecasting engine for stock health and reorder levels."""

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from .normalize import round_half_up
from .ranking import RankingPenaltyRequest


class StockStatus(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    LOW = "low"
    CRITICAL = "critical"
    OUT_OF_STOCK = "out_of_stock"


# Upper-exclusive day thresholds, checked in order
STOCK_STATUS_THRESHOLDS = (
    (3.0, StockStatus.CRITICAL),
    (7.0, StockStatus.LOW),
    (14.0, StockStatus.WARNING),
)


def classify_stock(stock: int, days_until_stockout: float) -> StockStatus:
    """Classify stock health from quantity on hand and stockout horizon."""
    if stock == 0:
        return StockStatus.OUT_OF_STOCK
    for upper, status in STOCK_STATUS_THRESHOLDS:
        if days_until_stockout < upper:
            return status
    return StockStatus.HEALTHY


@dataclass
class SalesWindows:
    """Unit sales over the three comparison windows."""

    sales_7d: int = 0
    sales_30d: int = 0
    sales_prev_30d: int = 0  # days 31-60 back


@dataclass
class InventoryForecast:
    """Forecast for one product."""

    product_id: str
    store_id: str
    stock: int
    sales_7d: int
    sales_30d: int
    avg_daily_sales: float
    growth_rate: float
    forecast_next_30d: float
    days_until_stockout: float
    recommended_stock_level: int
    stock_status: StockStatus
    high_demand: bool

    @property
    def out_of_stock(self) -> bool:
        return self.stock == 0

    @property
    def oversell_risk(self) -> bool:
        return self.stock_status == StockStatus.CRITICAL and self.high_demand

    def to_row(self, calculated_at: datetime, country_id: Optional[str] = None) -> dict:
        """Row for the inventory_metrics table."""
        return {
            "product_id": self.product_id,
            "country_id": country_id,
            "sales_7d": self.sales_7d,
            "sales_30d": self.sales_30d,
            "avg_daily_sales": self.avg_daily_sales,
            "growth_rate": self.growth_rate,
            "forecast_next_30d": self.forecast_next_30d,
            "days_until_stockout": self.days_until_stockout,
            "recommended_stock_level": self.recommended_stock_level,
            "stock_status": self.stock_status.value,
            "high_demand": self.high_demand,
            "last_calculated_at": calculated_at,
        }


class InventoryForecaster:
    """Estimate sales velocity and stockout horizon per product.

    Daily velocity blends the last week (60%) with the last month (40%) so a
    recent surge shows up before it dominates the 30-day average. Products
    without sales report a stockout horizon of NO_SALES_HORIZON days.
    """

    RECENT_WEIGHT = 0.6
    BUFFER_DAYS = 45
    STOCKOUT_ALERT_DAYS = 7.0
    HIGH_DEMAND_GROWTH = 50.0
    HIGH_DEMAND_MIN_SALES = 5
    NO_SALES_HORIZON = 999.0

    def __init__(self, config: Optional[Dict] = None):
        """Initialize inventory forecaster.

        Args:
            config: Optional configuration dictionary
        """
        if config:
            inventory_config = config.get("scoring", {}).get("inventory", {})
            self.RECENT_WEIGHT = inventory_config.get("recent_weight", self.RECENT_WEIGHT)
            self.BUFFER_DAYS = inventory_config.get("buffer_days", self.BUFFER_DAYS)
            self.STOCKOUT_ALERT_DAYS = inventory_config.get("stockout_alert_days", self.STOCKOUT_ALERT_DAYS)
            self.HIGH_DEMAND_GROWTH = inventory_config.get("high_demand_growth", self.HIGH_DEMAND_GROWTH)
            self.HIGH_DEMAND_MIN_SALES = inventory_config.get("high_demand_min_sales", self.HIGH_DEMAND_MIN_SALES)
            self.NO_SALES_HORIZON = inventory_config.get("no_sales_horizon", self.NO_SALES_HORIZON)

    def average_daily_sales(self, sales: SalesWindows) -> float:
        return self.RECENT_WEIGHT * (sales.sales_7d / 7) + (1 - self.RECENT_WEIGHT) * (sales.sales_30d / 30)

    def growth_rate(self, sales: SalesWindows) -> float:
        """Month-over-month growth in percent."""
        if sales.sales_prev_30d > 0:
            return round_half_up((sales.sales_30d - sales.sales_prev_30d) / sales.sales_prev_30d * 100, 1)
        return 100.0 if sales.sales_30d > 0 else 0.0

    def forecast(self, product_id: str, store_id: str, stock: int, sales: SalesWindows) -> InventoryForecast:
        """Forecast stock health for one product.

        Args:
            product_id: Product id
            store_id: Owning store id
            stock: Units on hand
            sales: Unit sales per window

        Returns:
            InventoryForecast instance
        """
        stock = max(0, stock or 0)
        avg_daily = self.average_daily_sales(sales)

        if avg_daily > 0:
            days_until_stockout = round_half_up(stock / avg_daily, 1)
        else:
            days_until_stockout = self.NO_SALES_HORIZON

        growth = self.growth_rate(sales)
        high_demand = growth >= self.HIGH_DEMAND_GROWTH and sales.sales_30d >= self.HIGH_DEMAND_MIN_SALES

        return InventoryForecast(
            product_id=product_id,
            store_id=store_id,
            stock=stock,
            sales_7d=sales.sales_7d,
            sales_30d=sales.sales_30d,
            avg_daily_sales=round_half_up(avg_daily, 2),
            growth_rate=growth,
            forecast_next_30d=round_half_up(avg_daily * 30, 1),
            days_until_stockout=days_until_stockout,
            recommended_stock_level=math.ceil(avg_daily * self.BUFFER_DAYS),
            stock_status=classify_stock(stock, days_until_stockout),
            high_demand=high_demand,
        )

    def needs_restock_alert(self, forecast: InventoryForecast) -> bool:
        return forecast.stock > 0 and 0 < forecast.days_until_stockout < self.STOCKOUT_ALERT_DAYS

    def penalty_request(self, forecast: InventoryForecast) -> Optional[RankingPenaltyRequest]:
        """Ask the ranking owner to demote a product likely to oversell."""
        if not forecast.oversell_risk:
            return None
        return RankingPenaltyRequest(product_id=forecast.product_id)
