from datetime import datetime, timedelta

from marketplace_intel.alerts import notifications
from marketplace_intel.alerts.dedup import NotificationGate
from marketplace_intel.scoring.inventory import InventoryForecaster, SalesWindows
from marketplace_intel.storage import Database

NOW = datetime(2025, 3, 1, 12, 0, 0)


def _low_stock_draft(product_id="p1", now=NOW):
    forecast = InventoryForecaster().forecast(product_id, "s1", 3, SalesWindows(sales_7d=7, sales_30d=30))
    return notifications.low_stock(forecast, now)


def test_second_alert_within_window_is_suppressed():
    db = Database("sqlite:///:memory:")
    gate = NotificationGate(db, window_hours=24)

    assert gate.submit([_low_stock_draft()], now=NOW) == 1
    later = NOW + timedelta(hours=6)
    assert gate.submit([_low_stock_draft(now=later)], now=later) == 0

    assert len(db.get_notifications(store_id="s1", notification_type="inventory")) == 1


def test_alert_after_window_is_stored_again():
    db = Database("sqlite:///:memory:")
    gate = NotificationGate(db, window_hours=24)

    gate.submit([_low_stock_draft()], now=NOW)
    later = NOW + timedelta(hours=25)
    assert gate.submit([_low_stock_draft(now=later)], now=later) == 1

    assert len(db.get_notifications(notification_type="inventory")) == 2


def test_duplicates_within_one_batch_are_collapsed():
    db = Database("sqlite:///:memory:")
    gate = NotificationGate(db)

    sent = gate.submit([_low_stock_draft("p1"), _low_stock_draft("p1"), _low_stock_draft("p2")], now=NOW)

    assert sent == 2


def test_same_subject_of_another_type_is_not_suppressed():
    db = Database("sqlite:///:memory:")
    gate = NotificationGate(db)

    gate.submit([_low_stock_draft("p1")], now=NOW)
    risk = notifications.financing_default("s1", "p1", 3, NOW)

    assert gate.submit([risk], now=NOW) == 1


def test_stored_metadata_carries_subject():
    db = Database("sqlite:///:memory:")
    NotificationGate(db).submit([_low_stock_draft()], now=NOW)

    stored = db.get_notifications()[0]

    assert stored.metadata_["subject_id"] == "p1"
    assert stored.metadata_["days_until_stockout"] == 3.0
    assert stored.title == "Estimated stockout in 3 days"
    assert stored.is_read is False


def test_low_stock_title_rounds_half_days_up():
    forecast = InventoryForecaster().forecast("p1", "s1", 9, SalesWindows(sales_7d=14, sales_30d=60))

    assert forecast.days_until_stockout == 4.5
    assert notifications.low_stock(forecast, NOW).title == "Estimated stockout in 5 days"


def test_gate_keys_drafts_by_type_and_subject():
    db = Database("sqlite:///:memory:")
    draft = _low_stock_draft("p1")
    renamed = draft.model_copy(update={"title": "Restock soon"})
    risk = notifications.financing_default("s1", "p1", 3, NOW)

    assert draft.dedup_key == ("inventory", "p1")
    assert renamed.dedup_key == draft.dedup_key
    assert risk.dedup_key != draft.dedup_key
    assert NotificationGate(db).submit([draft, renamed, risk], now=NOW) == 2
