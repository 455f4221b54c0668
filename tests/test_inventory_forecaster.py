from datetime import datetime

from marketplace_intel.scoring.inventory import (
    InventoryForecaster,
    SalesWindows,
    StockStatus,
    classify_stock,
)


def test_no_sales_reports_999_day_horizon():
    forecaster = InventoryForecaster()
    forecast = forecaster.forecast("p1", "s1", 40, SalesWindows())

    assert forecast.days_until_stockout == 999
    assert forecast.stock_status == StockStatus.HEALTHY
    assert forecast.avg_daily_sales == 0
    assert forecast.recommended_stock_level == 0
    assert forecaster.needs_restock_alert(forecast) is False


def test_stock_status_boundaries_are_upper_exclusive():
    assert classify_stock(10, 7.0) == StockStatus.WARNING
    assert classify_stock(10, 3.0) == StockStatus.LOW
    assert classify_stock(10, 2.9) == StockStatus.CRITICAL
    assert classify_stock(10, 14.0) == StockStatus.HEALTHY
    assert classify_stock(0, 999) == StockStatus.OUT_OF_STOCK


def test_velocity_blends_last_week_and_last_month():
    forecaster = InventoryForecaster()
    sales = SalesWindows(sales_7d=7, sales_30d=30, sales_prev_30d=30)

    forecast = forecaster.forecast("p1", "s1", 10, sales)

    assert forecast.avg_daily_sales == 1.0
    assert forecast.days_until_stockout == 10.0
    assert forecast.forecast_next_30d == 30.0
    assert forecast.recommended_stock_level == 45
    assert forecast.stock_status == StockStatus.WARNING
    assert forecast.growth_rate == 0


def test_growth_rate():
    forecaster = InventoryForecaster()

    assert forecaster.growth_rate(SalesWindows(sales_30d=15, sales_prev_30d=10)) == 50.0
    assert forecaster.growth_rate(SalesWindows(sales_30d=5, sales_prev_30d=0)) == 100.0
    assert forecaster.growth_rate(SalesWindows(sales_30d=0, sales_prev_30d=0)) == 0.0
    assert forecaster.growth_rate(SalesWindows(sales_30d=5, sales_prev_30d=10)) == -50.0


def test_restock_alert_window():
    forecaster = InventoryForecaster()

    # 3 units at one a day
    low = forecaster.forecast("p1", "s1", 3, SalesWindows(sales_7d=7, sales_30d=30))
    assert low.days_until_stockout == 3.0
    assert low.stock_status == StockStatus.LOW
    assert forecaster.needs_restock_alert(low) is True

    empty = forecaster.forecast("p2", "s1", 0, SalesWindows(sales_7d=7, sales_30d=30))
    assert empty.out_of_stock is True
    assert empty.stock_status == StockStatus.OUT_OF_STOCK
    assert forecaster.needs_restock_alert(empty) is False


def test_critical_high_demand_product_requests_ranking_penalty():
    forecaster = InventoryForecaster()
    sales = SalesWindows(sales_7d=14, sales_30d=14, sales_prev_30d=4)

    forecast = forecaster.forecast("p1", "s1", 2, sales)

    assert forecast.stock_status == StockStatus.CRITICAL
    assert forecast.high_demand is True
    request = forecaster.penalty_request(forecast)
    assert request is not None
    assert request.product_id == "p1"
    assert request.reason == "oversell_risk"


def test_critical_without_growth_requests_no_penalty():
    forecaster = InventoryForecaster()
    sales = SalesWindows(sales_7d=14, sales_30d=30, sales_prev_30d=30)

    forecast = forecaster.forecast("p1", "s1", 2, sales)

    assert forecast.stock_status == StockStatus.CRITICAL
    assert forecast.high_demand is False
    assert forecaster.penalty_request(forecast) is None


def test_to_row_carries_country_and_status_value():
    forecaster = InventoryForecaster()
    forecast = forecaster.forecast("p1", "s1", 10, SalesWindows(sales_7d=7, sales_30d=30))

    row = forecast.to_row(datetime(2025, 1, 1), country_id="c1")

    assert row["country_id"] == "c1"
    assert row["stock_status"] == "warning"
    assert row["last_calculated_at"] == datetime(2025, 1, 1)
