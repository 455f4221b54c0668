"""Job coordination for the marketplace intelligence engine."""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from loguru import logger

from ..alerts import notifications
from ..alerts.dedup import NotificationGate
from ..scoring.financing import FinancingInputs, FinancingScorer
from ..scoring.inventory import InventoryForecaster, SalesWindows
from ..scoring.offers import Active, Defaulted, Repaid, advance, settle, state_from_offer
from ..scoring.ranking import RankingPenaltyRequest, RankingScorer, RankingSignals
from ..storage.database import Database
from ..storage.models import FULFILLED_ORDER_STATUSES, RETURNED_ORDER_STATUSES
from ..utils.config import get_config

UPSERT_BATCH_SIZE = 100


class JobCoordinator:
    """Coordinates the ranking, inventory and financing batch jobs."""

    def __init__(self, config: Optional[Dict] = None, db: Optional[Database] = None):
        """Initialize job coordinator.

        Args:
            config: Optional configuration dictionary
            db: Optional database, built from config when omitted
        """
        if config is None:
            config = get_config().model_dump()

        self.config = config

        if db is None:
            db_config = config.get("database", {})
            db = Database(
                db_config.get("url", "sqlite:///data/db/marketplace.db"),
                echo=db_config.get("echo", False),
                chunk_size=db_config.get("chunk_size", 200),
            )
        self.db = db

        window_hours = config.get("notifications", {}).get("dedup_window_hours", 24)
        self.gate = NotificationGate(self.db, window_hours=window_hours)

        self.ranking = RankingScorer(config)
        self.inventory = InventoryForecaster(config)
        self.financing = FinancingScorer(config)

        scoring_config = config.get("scoring", {})
        self.ranking_window = timedelta(days=scoring_config.get("ranking", {}).get("window_days", 30))
        financing_config = scoring_config.get("financing", {})
        self.financing_window = timedelta(days=financing_config.get("window_days", 90))
        self.cycle_days = financing_config.get("cycle_days", 30)
        self.max_missed_cycles = financing_config.get("max_missed_cycles", 3)

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------

    async def run_rankings(self, product_ids: Optional[Sequence[str]] = None, now: Optional[datetime] = None) -> dict:
        """Recompute the composite rank of published, in-stock products.

        Args:
            product_ids: Optional subset of products
            now: Reference time, defaults to now

        Returns:
            Summary with ranked and notifications counts
        """
        now = now or datetime.utcnow()
        logger.info("Starting ranking run")

        products = self.db.get_products(product_ids, in_stock_only=True)
        if not products:
            logger.info("No products to rank")
            return {"ranked": 0, "notifications": 0}

        ids = [p.id for p in products]
        since = now - self.ranking_window

        sold = self.db.get_units_sold(since, product_ids=ids)
        returned = self.db.get_units_sold(since, statuses=RETURNED_ORDER_STATUSES, product_ids=ids)
        views = self.db.get_event_counts("page_view", since, product_ids=ids)
        carts = self.db.get_event_counts("add_to_cart", since, product_ids=ids)
        sellers = self.db.get_seller_signals(sorted({p.store_id for p in products}))

        batch = []
        for product in products:
            seller = sellers.get(product.store_id, {})
            sla = seller.get("sla_compliance")
            health = seller.get("score")
            batch.append(
                RankingSignals(
                    product_id=product.id,
                    store_id=product.store_id,
                    units_sold=sold.get(product.id, 0),
                    units_returned=returned.get(product.id, 0),
                    page_views=views.get(product.id, 0),
                    add_to_cart=carts.get(product.id, 0),
                    avg_rating=product.avg_rating or 0.0,
                    review_count=product.review_count or 0,
                    seller_sla=100.0 if sla is None else sla,
                    risk_penalty=0.0 if health is None else max(0.0, 100 - health),
                )
            )

        snapshot = self.db.get_ranking_snapshot(ids)
        results = self.ranking.score_batch(batch, snapshot)

        stored = []
        for i in range(0, len(results), UPSERT_BATCH_SIZE):
            chunk = results[i : i + UPSERT_BATCH_SIZE]
            try:
                self.db.upsert_ranking_scores([result.to_row(now) for result in chunk])
            except Exception as e:
                logger.error(f"Ranking upsert failed for {len(chunk)} products: {e}")
                continue
            stored.extend(chunk)

        # Drop alerts only for rows whose chunk committed
        drafts = [notifications.ranking_drop(r, now) for r in stored if r.store_id and self.ranking.is_sharp_drop(r)]
        sent = self.gate.submit(drafts, now=now)
        ranked = len(stored)

        logger.info(f"Ranked {ranked} products, {sent} drop notifications")
        return {"ranked": ranked, "notifications": sent}

    def apply_ranking_penalties(self, requests: List[RankingPenaltyRequest], now: Optional[datetime] = None) -> int:
        """Ranking-side handler for penalty requests raised by other jobs.

        Returns:
            Number of ranking rows lowered
        """
        now = now or datetime.utcnow()
        applied = 0
        for request in requests:
            try:
                points = self.ranking.penalty_points(request)
                if self.db.apply_ranking_penalty(request.product_id, points, now=now):
                    applied += 1
                    logger.info(f"Ranking of {request.product_id} lowered by {points} ({request.reason})")
            except Exception as e:
                logger.error(f"Error applying ranking penalty to {request.product_id}: {e}")
        return applied

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    async def run_inventory(self, product_ids: Optional[Sequence[str]] = None, now: Optional[datetime] = None) -> dict:
        """Forecast stock health of published products and run stock automations.

        Args:
            product_ids: Optional subset of products
            now: Reference time, defaults to now

        Returns:
            Summary with calculated, auto_hidden and penalties counts
        """
        now = now or datetime.utcnow()
        logger.info("Starting inventory run")

        self.db.release_expired_stock_locks(now)

        products = self.db.get_products(product_ids)
        if not products:
            logger.info("No products to forecast")
            return {"calculated": 0, "auto_hidden": 0, "penalties": 0}

        ids = [p.id for p in products]
        d7, d30, d60 = (now - timedelta(days=days) for days in (7, 30, 60))
        sales_7d = self.db.get_units_sold(d7, product_ids=ids)
        sales_30d = self.db.get_units_sold(d30, product_ids=ids)
        sales_prev_30d = self.db.get_units_sold(d60, until=d30, product_ids=ids)

        rows = []
        drafts = []
        auto_hide = []
        penalties: List[RankingPenaltyRequest] = []

        for product in products:
            try:
                forecast = self.inventory.forecast(
                    product.id,
                    product.store_id,
                    product.stock_quantity or 0,
                    SalesWindows(
                        sales_7d=sales_7d.get(product.id, 0),
                        sales_30d=sales_30d.get(product.id, 0),
                        sales_prev_30d=sales_prev_30d.get(product.id, 0),
                    ),
                )
            except Exception as e:
                logger.error(f"Error forecasting product {product.id}: {e}")
                continue

            rows.append(forecast.to_row(now))

            if self.inventory.needs_restock_alert(forecast):
                drafts.append(notifications.low_stock(forecast, now))
            if forecast.out_of_stock:
                auto_hide.append(forecast.product_id)

            request = self.inventory.penalty_request(forecast)
            if request:
                penalties.append(request)

        calculated = 0
        for i in range(0, len(rows), UPSERT_BATCH_SIZE):
            chunk = rows[i : i + UPSERT_BATCH_SIZE]
            try:
                calculated += self.db.upsert_inventory_metrics(chunk)
            except Exception as e:
                logger.error(f"Inventory upsert failed for {len(chunk)} products: {e}")

        if auto_hide:
            self.db.hide_listings(auto_hide)

        if penalties:
            self.apply_ranking_penalties(penalties, now=now)

        self.gate.submit(drafts, now=now)

        logger.info(
            f"Forecast {calculated} products: {len(auto_hide)} auto-hidden, {len(penalties)} ranking penalties"
        )
        return {"calculated": calculated, "auto_hidden": len(auto_hide), "penalties": len(penalties)}

    # ------------------------------------------------------------------
    # Financing
    # ------------------------------------------------------------------

    async def run_financing(self, store_id: Optional[str] = None, now: Optional[datetime] = None) -> dict:
        """Score sellers for financing, generate offers and maintain active ones.

        Args:
            store_id: Optional single store
            now: Reference time, defaults to now

        Returns:
            Summary with calculated and offers_generated counts
        """
        now = now or datetime.utcnow()
        logger.info("Starting financing run")

        stores = self.db.get_financing_stores(store_id)
        if not stores:
            logger.info("No stores to score for financing")
            return {"calculated": 0, "offers_generated": 0}

        calculated = 0
        offers_generated = 0

        for store in stores:
            try:
                offers_generated += self._score_store(store.id, now)
                calculated += 1
            except Exception as e:
                logger.error(f"Error scoring financing for store {store.id}: {e}")

            # Offer upkeep does not depend on the eligibility score
            try:
                self._maintain_active_offer(store.id, now)
            except Exception as e:
                logger.error(f"Error maintaining financing offer for store {store.id}: {e}")

        logger.info(f"Scored {calculated} stores for financing, {offers_generated} offers generated")
        return {"calculated": calculated, "offers_generated": offers_generated}

    def _score_store(self, store_id: str, now: datetime) -> int:
        """Assess one store and create an offer when it newly qualifies.

        Returns:
            1 if an offer was generated, else 0
        """
        since = now - self.financing_window
        inputs = FinancingInputs(
            store_id=store_id,
            sales_90d=self.db.get_store_sales_total(store_id, since),
            orders_90d=self.db.count_orders(store_id, since=since),
            returns_90d=self.db.count_return_requests(store_id, since),
            risk_score=self.db.get_seller_risk_score(store_id),
            completed_orders=self.db.count_orders(store_id, statuses=FULFILLED_ORDER_STATUSES),
        )

        assessment = self.financing.assess(inputs)
        self.db.upsert_financing_score(assessment.to_row(now))

        if not self.financing.qualifies_for_offer(assessment) or self.db.has_open_offer(store_id):
            return 0

        offer = self.db.create_offer(store_id, self.financing.offer_terms(assessment))
        self.gate.submit([notifications.financing_offer(assessment, offer.id, now)], now=now)
        logger.info(f"Generated financing offer {offer.id} for store {store_id}: {assessment.max_eligible_amount}")
        return 1

    def _maintain_active_offer(self, store_id: str, now: datetime):
        """Settle, count missed cycles on, or default the store's active offer."""
        offer = self.db.get_active_offer(store_id)
        if offer is None:
            return

        state = state_from_offer(offer)
        if (offer.remaining_balance or 0) <= 0:
            state = settle(state, now)
        else:
            state = advance(
                state,
                now,
                has_repayment=lambda start, end: self.db.count_repayments(offer.id, start, end) > 0,
                cycle_days=self.cycle_days,
                max_missed=self.max_missed_cycles,
            )

        self.db.save_offer_state(offer.id, state)

        if isinstance(state, Defaulted):
            logger.warning(f"Financing offer {offer.id} of store {store_id} defaulted")
            self.gate.submit(
                [notifications.financing_default(store_id, offer.id, state.missed_cycles, now)],
                now=now,
            )
        elif isinstance(state, Repaid):
            logger.info(f"Financing offer {offer.id} of store {store_id} repaid")
        elif isinstance(state, Active) and state.missed_cycles:
            logger.info(f"Financing offer {offer.id} has {state.missed_cycles} missed cycles")
