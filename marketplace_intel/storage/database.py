"""Database operations and management"""

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from loguru import logger
from sqlalchemy import create_engine, func
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ..scoring.offers import Active, Defaulted, OfferState, Repaid
from ..scoring.ranking import RankingSnapshot
from .models import (
    ACTIVE_ORDER_STATUSES,
    FULFILLED_ORDER_STATUSES,
    AnalyticsEvent,
    Base,
    FinancingOffer,
    FinancingRepayment,
    FinancingScore,
    InventoryMetric,
    MarketplaceListing,
    Notification,
    Order,
    OrderItem,
    Product,
    RankingScore,
    ReturnRequest,
    RiskScore,
    SellerRiskScore,
    StockLock,
    Store,
)


class Database:
    """Query/upsert interface over the marketplace datastore"""

    def __init__(
        self,
        db_url: str = "sqlite:///data/db/marketplace.db",
        echo: bool = False,
        chunk_size: int = 200,
    ):
        self.db_url = db_url
        self.chunk_size = chunk_size

        engine_kwargs = {"echo": echo}
        if db_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in db_url:
                # One shared connection, otherwise every thread sees an empty database
                engine_kwargs["poolclass"] = StaticPool
            elif db_url.startswith("sqlite:///"):
                Path(db_url[len("sqlite:///") :]).parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(db_url, **engine_kwargs)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)
        logger.info(f"Database initialized: {db_url}")

    @contextmanager
    def session(self):
        """Context manager for database sessions"""
        session = self.Session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            session.close()

    def _chunks(self, ids: Sequence[str]) -> Iterator[List[str]]:
        """Split a deduplicated id list to keep IN clauses under the query size limit"""
        ids = list(dict.fromkeys(ids))
        for i in range(0, len(ids), self.chunk_size):
            yield ids[i : i + self.chunk_size]

    # ------------------------------------------------------------------
    # Products and demand signals
    # ------------------------------------------------------------------

    def get_products(
        self,
        product_ids: Optional[Sequence[str]] = None,
        in_stock_only: bool = False,
    ) -> list[Product]:
        """Get published products, optionally narrowed to a subset"""
        with self.session() as session:
            query = session.query(Product).filter(Product.is_published.is_(True))
            if in_stock_only:
                query = query.filter(Product.stock_quantity > 0)

            if product_ids:
                products = []
                for chunk in self._chunks(product_ids):
                    products.extend(query.filter(Product.id.in_(chunk)).all())
            else:
                products = query.all()

            session.expunge_all()
            return products

    def get_units_sold(
        self,
        since: datetime,
        until: Optional[datetime] = None,
        statuses: Iterable[str] = ACTIVE_ORDER_STATUSES,
        product_ids: Optional[Sequence[str]] = None,
    ) -> Dict[str, int]:
        """Sum order-item quantities per product for orders created in [since, until)"""
        statuses = list(statuses)
        units: Dict[str, int] = {}

        with self.session() as session:
            base = (
                session.query(OrderItem.product_id, func.sum(OrderItem.quantity))
                .join(Order, OrderItem.order_id == Order.id)
                .filter(
                    Order.status.in_(statuses),
                    Order.created_at >= since,
                    OrderItem.product_id.isnot(None),
                )
            )
            if until is not None:
                base = base.filter(Order.created_at < until)

            chunks = self._chunks(product_ids) if product_ids else [None]
            for chunk in chunks:
                query = base if chunk is None else base.filter(OrderItem.product_id.in_(chunk))
                for product_id, quantity in query.group_by(OrderItem.product_id).all():
                    units[product_id] = units.get(product_id, 0) + int(quantity or 0)

        return units

    def get_event_counts(
        self,
        event_type: str,
        since: datetime,
        product_ids: Optional[Sequence[str]] = None,
    ) -> Dict[str, int]:
        """Count analytics events of one type per product"""
        counts: Dict[str, int] = {}

        with self.session() as session:
            base = session.query(AnalyticsEvent.product_id, func.count(AnalyticsEvent.id)).filter(
                AnalyticsEvent.event_type == event_type,
                AnalyticsEvent.created_at >= since,
                AnalyticsEvent.product_id.isnot(None),
            )

            chunks = self._chunks(product_ids) if product_ids else [None]
            for chunk in chunks:
                query = base if chunk is None else base.filter(AnalyticsEvent.product_id.in_(chunk))
                for product_id, count in query.group_by(AnalyticsEvent.product_id).all():
                    counts[product_id] = counts.get(product_id, 0) + int(count)

        return counts

    def get_seller_signals(self, store_ids: Sequence[str]) -> Dict[str, dict]:
        """Get SLA compliance and health score per store"""
        signals: Dict[str, dict] = {}
        if not store_ids:
            return signals

        with self.session() as session:
            for chunk in self._chunks(store_ids):
                rows = session.query(SellerRiskScore).filter(SellerRiskScore.store_id.in_(chunk)).all()
                for row in rows:
                    signals[row.store_id] = {
                        "sla_compliance": row.sla_compliance,
                        "score": row.score,
                    }

        return signals

    def release_expired_stock_locks(self, now: Optional[datetime] = None) -> int:
        """Release checkout reservations whose hold has expired"""
        now = now or datetime.utcnow()
        with self.session() as session:
            released = (
                session.query(StockLock)
                .filter(StockLock.released.is_(False), StockLock.expires_at <= now)
                .update({StockLock.released: True}, synchronize_session=False)
            )
            if released:
                logger.info(f"Released {released} expired stock locks")
            return released

    def hide_listings(self, product_ids: Sequence[str]) -> int:
        """Move published marketplace listings of the given products to hidden"""
        hidden = 0
        if not product_ids:
            return hidden

        with self.session() as session:
            for chunk in self._chunks(product_ids):
                hidden += (
                    session.query(MarketplaceListing)
                    .filter(
                        MarketplaceListing.product_id.in_(chunk),
                        MarketplaceListing.status == "published",
                    )
                    .update(
                        {
                            MarketplaceListing.status: "hidden",
                            MarketplaceListing.updated_at: datetime.utcnow(),
                        },
                        synchronize_session=False,
                    )
                )

        logger.info(f"Hid {hidden} marketplace listings")
        return hidden

    # ------------------------------------------------------------------
    # Ranking scores
    # ------------------------------------------------------------------

    def get_ranking_snapshot(self, product_ids: Sequence[str]) -> Dict[str, RankingSnapshot]:
        """Read the stored ranking rows as an immutable snapshot"""
        snapshot: Dict[str, RankingSnapshot] = {}
        if not product_ids:
            return snapshot

        with self.session() as session:
            for chunk in self._chunks(product_ids):
                rows = session.query(RankingScore).filter(RankingScore.product_id.in_(chunk)).all()
                for row in rows:
                    snapshot[row.product_id] = RankingSnapshot(
                        product_id=row.product_id,
                        score=row.score or 0,
                        previous_score=row.previous_score or 0,
                        trending_badge=bool(row.trending_badge),
                        calculated_at=row.last_calculated_at,
                    )

        return snapshot

    def upsert_ranking_scores(self, rows: List[dict]) -> int:
        """Insert or overwrite ranking rows keyed by product id"""
        with self.session() as session:
            product_ids = [row["product_id"] for row in rows]
            existing = {
                score.product_id: score
                for score in session.query(RankingScore).filter(RankingScore.product_id.in_(product_ids)).all()
            }

            for row in rows:
                score = existing.get(row["product_id"])
                if score is None:
                    score = RankingScore(product_id=row["product_id"])
                    session.add(score)
                    existing[row["product_id"]] = score
                for key, value in row.items():
                    setattr(score, key, value)
                # A fresh computation clears any outstanding oversell penalty
                score.penalized_at = None

        return len(rows)

    def apply_ranking_penalty(self, product_id: str, points: int, now: Optional[datetime] = None) -> bool:
        """Lower a stored ranking score; at most once per recomputation"""
        now = now or datetime.utcnow()
        with self.session() as session:
            score = session.query(RankingScore).filter(RankingScore.product_id == product_id).first()
            if score is None:
                return False
            if score.penalized_at is not None:
                logger.debug(f"Ranking for {product_id} already penalized at {score.penalized_at}")
                return False

            score.score = max(0, (score.score or 0) - points)
            score.risk_penalty = points
            score.penalized_at = now
            return True

    # ------------------------------------------------------------------
    # Inventory metrics
    # ------------------------------------------------------------------

    def upsert_inventory_metrics(self, rows: List[dict]) -> int:
        """Insert or overwrite inventory rows keyed by (product id, country id)"""
        with self.session() as session:
            for row in rows:
                country_id = row.get("country_id")
                query = session.query(InventoryMetric).filter(InventoryMetric.product_id == row["product_id"])
                if country_id is None:
                    query = query.filter(InventoryMetric.country_id.is_(None))
                else:
                    query = query.filter(InventoryMetric.country_id == country_id)

                metric = query.first()
                if metric is None:
                    metric = InventoryMetric(product_id=row["product_id"], country_id=country_id)
                    session.add(metric)
                for key, value in row.items():
                    setattr(metric, key, value)

        return len(rows)

    # ------------------------------------------------------------------
    # Financing
    # ------------------------------------------------------------------

    def get_financing_stores(self, store_id: Optional[str] = None) -> list[Store]:
        """Get active, non-banned stores"""
        with self.session() as session:
            query = session.query(Store).filter(Store.is_active.is_(True), Store.is_banned.is_(False))
            if store_id:
                query = query.filter(Store.id == store_id)

            stores = query.all()
            session.expunge_all()
            return stores

    def get_store_sales_total(
        self,
        store_id: str,
        since: datetime,
        statuses: Iterable[str] = FULFILLED_ORDER_STATUSES,
    ) -> float:
        """Sum order totals for a store since a date"""
        with self.session() as session:
            total = (
                session.query(func.sum(Order.total))
                .filter(
                    Order.store_id == store_id,
                    Order.status.in_(list(statuses)),
                    Order.created_at >= since,
                )
                .scalar()
            )
            return float(total or 0)

    def count_orders(
        self,
        store_id: str,
        since: Optional[datetime] = None,
        statuses: Optional[Iterable[str]] = None,
    ) -> int:
        """Count a store's orders, optionally by window and status"""
        with self.session() as session:
            query = session.query(func.count(Order.id)).filter(Order.store_id == store_id)
            if since is not None:
                query = query.filter(Order.created_at >= since)
            if statuses is not None:
                query = query.filter(Order.status.in_(list(statuses)))
            return int(query.scalar() or 0)

    def count_return_requests(self, store_id: str, since: datetime) -> int:
        """Count return requests opened against a store since a date"""
        with self.session() as session:
            return int(
                session.query(func.count(ReturnRequest.id))
                .filter(ReturnRequest.store_id == store_id, ReturnRequest.created_at >= since)
                .scalar()
                or 0
            )

    def get_seller_risk_score(self, store_id: str) -> Optional[float]:
        """Get the seller risk score, None when the store has no record"""
        with self.session() as session:
            risk = (
                session.query(RiskScore)
                .filter(RiskScore.target_type == "seller", RiskScore.target_id == store_id)
                .first()
            )
            return None if risk is None else risk.score

    def upsert_financing_score(self, row: dict):
        """Insert or overwrite the financing score of a store"""
        with self.session() as session:
            score = session.query(FinancingScore).filter(FinancingScore.store_id == row["store_id"]).first()
            if score is None:
                score = FinancingScore(store_id=row["store_id"])
                session.add(score)
            for key, value in row.items():
                setattr(score, key, value)

    def has_open_offer(self, store_id: str) -> bool:
        """Whether the store has an offer that is offered or active"""
        with self.session() as session:
            return (
                session.query(FinancingOffer.id)
                .filter(
                    FinancingOffer.store_id == store_id,
                    FinancingOffer.status.in_(["offered", "active"]),
                )
                .first()
                is not None
            )

    def create_offer(self, store_id: str, terms: dict) -> FinancingOffer:
        """Record a new financing offer in the offered state"""
        with self.session() as session:
            offer = FinancingOffer(store_id=store_id, status="offered", missed_cycles=0, **terms)
            session.add(offer)
            session.flush()
            session.expunge(offer)
            return offer

    def get_active_offer(self, store_id: str) -> Optional[FinancingOffer]:
        """Get the active offer of a store"""
        with self.session() as session:
            offer = (
                session.query(FinancingOffer)
                .filter(FinancingOffer.store_id == store_id, FinancingOffer.status == "active")
                .order_by(FinancingOffer.created_at.desc())
                .first()
            )
            if offer:
                session.expunge(offer)
            return offer

    def count_repayments(self, offer_id: str, since: datetime, until: datetime) -> int:
        """Count repayments recorded against an offer in [since, until)"""
        with self.session() as session:
            return int(
                session.query(func.count(FinancingRepayment.id))
                .filter(
                    FinancingRepayment.offer_id == offer_id,
                    FinancingRepayment.created_at >= since,
                    FinancingRepayment.created_at < until,
                )
                .scalar()
                or 0
            )

    def save_offer_state(self, offer_id: str, state: OfferState):
        """Persist the lifecycle state of an offer"""
        with self.session() as session:
            offer = session.query(FinancingOffer).filter(FinancingOffer.id == offer_id).first()
            if offer is None:
                return

            offer.status = state.status.value
            if isinstance(state, Active):
                offer.missed_cycles = state.missed_cycles
                offer.cycles_evaluated = state.cycles_evaluated
                offer.activated_at = state.activated_at
            elif isinstance(state, Defaulted):
                offer.missed_cycles = state.missed_cycles
                offer.defaulted_at = state.defaulted_at
                offer.closed_at = state.defaulted_at
            elif isinstance(state, Repaid):
                offer.remaining_balance = 0
                offer.closed_at = state.closed_at

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def get_recent_notification_subjects(self, notification_type: str, since: datetime) -> set[str]:
        """Collect subject ids of notifications of one type recorded since a date"""
        with self.session() as session:
            rows = (
                session.query(Notification.metadata_)
                .filter(Notification.type == notification_type, Notification.created_at >= since)
                .all()
            )

        subjects = set()
        for (metadata,) in rows:
            subject_id = (metadata or {}).get("subject_id")
            if subject_id:
                subjects.add(subject_id)
        return subjects

    def add_notifications(self, rows: List[dict]) -> int:
        """Append notification rows"""
        with self.session() as session:
            for row in rows:
                session.add(Notification(**row))
        return len(rows)

    def get_notifications(self, store_id: Optional[str] = None, notification_type: Optional[str] = None) -> list[Notification]:
        """List stored notifications, newest first"""
        with self.session() as session:
            query = session.query(Notification)
            if store_id:
                query = query.filter(Notification.store_id == store_id)
            if notification_type:
                query = query.filter(Notification.type == notification_type)

            notifications = query.order_by(Notification.created_at.desc()).all()
            session.expunge_all()
            return notifications
