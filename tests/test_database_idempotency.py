from datetime import datetime

from marketplace_intel.storage import Database
from marketplace_intel.storage.models import FinancingScore, InventoryMetric, RankingScore


def _ranking_row(product_id="p1", score=60, previous_score=40):
    return {
        "product_id": product_id,
        "score": score,
        "sales_30d": 12,
        "sales_weight": 100.0,
        "conversion_rate": 5.0,
        "rating": 80.0,
        "review_count": 4,
        "seller_sla": 100.0,
        "return_rate": 0.0,
        "risk_penalty": 0.0,
        "previous_score": previous_score,
        "trending_badge": True,
        "last_calculated_at": datetime(2025, 1, 1, 10, 0, 0),
    }


def test_upsert_ranking_scores_is_keyed_by_product():
    db = Database("sqlite:///:memory:")

    db.upsert_ranking_scores([_ranking_row()])
    db.upsert_ranking_scores([_ranking_row(score=65, previous_score=60)])

    with db.session() as session:
        assert session.query(RankingScore).count() == 1
        row = session.query(RankingScore).first()
        assert row.score == 65
        assert row.previous_score == 60


def test_ranking_snapshot_reflects_stored_rows():
    db = Database("sqlite:///:memory:")
    db.upsert_ranking_scores([_ranking_row("p1"), _ranking_row("p2", score=30, previous_score=30)])

    snapshot = db.get_ranking_snapshot(["p1", "p2", "p3"])

    assert set(snapshot) == {"p1", "p2"}
    assert snapshot["p1"].score == 60
    assert snapshot["p1"].previous_score == 40
    assert snapshot["p1"].trending_badge is True


def test_ranking_penalty_applies_once_per_recomputation():
    db = Database("sqlite:///:memory:")
    db.upsert_ranking_scores([_ranking_row()])
    now = datetime(2025, 1, 1, 11, 0, 0)

    assert db.apply_ranking_penalty("p1", 10, now=now) is True
    assert db.apply_ranking_penalty("p1", 10, now=now) is False
    assert db.apply_ranking_penalty("missing", 10, now=now) is False
    assert db.get_ranking_snapshot(["p1"])["p1"].score == 50

    # A recompute clears the penalty marker
    db.upsert_ranking_scores([_ranking_row()])
    assert db.apply_ranking_penalty("p1", 10, now=now) is True


def test_upsert_inventory_metrics_handles_missing_country():
    db = Database("sqlite:///:memory:")
    row = {
        "product_id": "p1",
        "country_id": None,
        "sales_7d": 3,
        "sales_30d": 10,
        "days_until_stockout": 12.5,
        "stock_status": "warning",
        "last_calculated_at": datetime(2025, 1, 1),
    }

    db.upsert_inventory_metrics([row])
    db.upsert_inventory_metrics([{**row, "stock_status": "low", "days_until_stockout": 5.0}])
    db.upsert_inventory_metrics([{**row, "country_id": "c1"}])

    with db.session() as session:
        assert session.query(InventoryMetric).count() == 2
        metric = session.query(InventoryMetric).filter(InventoryMetric.country_id.is_(None)).one()
        assert metric.stock_status == "low"
        assert metric.days_until_stockout == 5.0


def test_upsert_financing_score_updates_existing_record():
    db = Database("sqlite:///:memory:")
    row = {
        "store_id": "s1",
        "sales_90d": 150_000.0,
        "eligibility_score": 42,
        "is_eligible": True,
        "last_calculated_at": datetime(2025, 1, 1),
    }

    db.upsert_financing_score(row)
    db.upsert_financing_score({**row, "eligibility_score": 38, "is_eligible": False})

    with db.session() as session:
        assert session.query(FinancingScore).count() == 1
        score = session.query(FinancingScore).first()
        assert score.eligibility_score == 38
        assert score.is_eligible is False


def test_upsert_ranking_scores_tolerates_repeated_key_in_one_batch():
    db = Database("sqlite:///:memory:")

    assert db.upsert_ranking_scores([_ranking_row(score=60), _ranking_row(score=62)]) == 2

    with db.session() as session:
        assert session.query(RankingScore).count() == 1
        assert session.query(RankingScore).first().score == 62


def test_chunked_reads_ignore_repeated_ids():
    db = Database("sqlite:///:memory:", chunk_size=2)
    db.upsert_ranking_scores([_ranking_row("p1"), _ranking_row("p2")])

    assert list(db._chunks(["p1", "p2", "p1", "p3", "p2"])) == [["p1", "p2"], ["p3"]]
    assert set(db.get_ranking_snapshot(["p1", "p2", "p1"])) == {"p1", "p2"}
