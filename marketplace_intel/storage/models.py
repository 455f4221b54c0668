"""Database models for the marketplace intelligence engine."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


# Order statuses counted as live demand
ACTIVE_ORDER_STATUSES = ("new", "confirmed", "packed", "shipped", "delivered")
RETURNED_ORDER_STATUSES = ("returned", "refunded")
FULFILLED_ORDER_STATUSES = ("delivered", "completed")


# ============================================================================
# Platform tables (read by the engine)
# ============================================================================


class Store(Base):
    """Seller storefront."""

    __tablename__ = "stores"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False, default="")
    is_active = Column(Boolean, default=True, index=True)
    is_banned = Column(Boolean, default=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    products = relationship("Product", back_populates="store")

    def __repr__(self):
        return f"<Store(id={self.id}, name='{self.name}')>"


class Product(Base):
    """Catalog product owned by a store."""

    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_uuid)
    store_id = Column(String(36), ForeignKey("stores.id"), index=True, nullable=False)
    name = Column(String, nullable=False, default="")
    is_published = Column(Boolean, default=False, index=True)
    stock_quantity = Column(Integer, default=0)
    avg_rating = Column(Float, default=0.0)
    review_count = Column(Integer, default=0)

    store = relationship("Store", back_populates="products")

    def __repr__(self):
        return f"<Product(id={self.id}, stock={self.stock_quantity})>"


class Order(Base):
    """Customer order. Never mutated by the engine."""

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    store_id = Column(String(36), ForeignKey("stores.id"), index=True, nullable=False)
    status = Column(String, index=True, nullable=False, default="new")
    total = Column(Float, default=0.0)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    items = relationship("OrderItem", back_populates="order")

    def __repr__(self):
        return f"<Order(id={self.id}, status='{self.status}', total={self.total})>"


class OrderItem(Base):
    """Order line."""

    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), index=True, nullable=False)
    product_id = Column(String(36), ForeignKey("products.id"), index=True)
    quantity = Column(Integer, default=1)

    order = relationship("Order", back_populates="items")


class AnalyticsEvent(Base):
    """Storefront tracking event (page_view, add_to_cart, ...)."""

    __tablename__ = "analytics_events"

    id = Column(String(36), primary_key=True, default=_uuid)
    store_id = Column(String(36), index=True)
    product_id = Column(String(36), index=True)
    event_type = Column(String, index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class ReturnRequest(Base):
    """Buyer return request."""

    __tablename__ = "return_requests"

    id = Column(String(36), primary_key=True, default=_uuid)
    store_id = Column(String(36), ForeignKey("stores.id"), index=True, nullable=False)
    order_id = Column(String(36), ForeignKey("orders.id"))
    product_id = Column(String(36))
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class SellerRiskScore(Base):
    """Seller health record maintained by the risk subsystem (100 = healthy)."""

    __tablename__ = "seller_risk_scores"

    store_id = Column(String(36), ForeignKey("stores.id"), primary_key=True)
    score = Column(Float, default=100.0)
    sla_compliance = Column(Float, default=100.0)
    last_calculated_at = Column(DateTime, default=datetime.utcnow)


class RiskScore(Base):
    """Generic risk signal (higher = riskier)."""

    __tablename__ = "risk_scores"

    id = Column(String(36), primary_key=True, default=_uuid)
    target_type = Column(String, index=True, nullable=False)  # seller, buyer
    target_id = Column(String(36), index=True, nullable=False)
    score = Column(Float, default=50.0)


class StockLock(Base):
    """Checkout stock reservation."""

    __tablename__ = "stock_locks"

    id = Column(String(36), primary_key=True, default=_uuid)
    product_id = Column(String(36), ForeignKey("products.id"), index=True, nullable=False)
    session_id = Column(String)
    quantity = Column(Integer, default=1)
    locked_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, index=True, nullable=False)
    released = Column(Boolean, default=False, index=True)


class MarketplaceListing(Base):
    """Product listing on the shared marketplace."""

    __tablename__ = "marketplace_listings"

    id = Column(String(36), primary_key=True, default=_uuid)
    product_id = Column(String(36), ForeignKey("products.id"), index=True, nullable=False)
    store_id = Column(String(36), ForeignKey("stores.id"), index=True)
    status = Column(String, index=True, default="submitted")  # hidden, submitted, approved, published, rejected
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class FinancingRepayment(Base):
    """Deduction taken from a payout against a financing offer."""

    __tablename__ = "financing_repayments"

    id = Column(String(36), primary_key=True, default=_uuid)
    offer_id = Column(String(36), ForeignKey("financing_offers.id"), index=True, nullable=False)
    store_id = Column(String(36), index=True)
    amount_deducted = Column(Float, default=0.0)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


# ============================================================================
# Engine-owned tables
# ============================================================================


class RankingScore(Base):
    """Composite marketplace rank, one row per product."""

    __tablename__ = "product_ranking_scores"

    id = Column(String(36), primary_key=True, default=_uuid)
    product_id = Column(String(36), ForeignKey("products.id"), unique=True, nullable=False)

    score = Column(Integer, default=0, index=True)
    sales_30d = Column(Integer, default=0)
    sales_weight = Column(Float, default=0.0)
    conversion_rate = Column(Float, default=0.0)
    rating = Column(Float, default=0.0)
    review_count = Column(Integer, default=0)
    seller_sla = Column(Float, default=0.0)
    return_rate = Column(Float, default=0.0)
    risk_penalty = Column(Float, default=0.0)

    previous_score = Column(Integer, default=0)
    trending_badge = Column(Boolean, default=False)
    last_calculated_at = Column(DateTime, default=datetime.utcnow)
    penalized_at = Column(DateTime)  # Oversell penalty since last recompute

    def __repr__(self):
        return f"<RankingScore(product_id={self.product_id}, score={self.score})>"


class InventoryMetric(Base):
    """Stock health forecast, one row per product and country."""

    __tablename__ = "inventory_metrics"
    __table_args__ = (UniqueConstraint("product_id", "country_id", name="uq_inventory_product_country"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    product_id = Column(String(36), ForeignKey("products.id"), index=True, nullable=False)
    country_id = Column(String(36))

    sales_7d = Column(Integer, default=0)
    sales_30d = Column(Integer, default=0)
    avg_daily_sales = Column(Float, default=0.0)
    growth_rate = Column(Float, default=0.0)
    forecast_next_30d = Column(Float, default=0.0)
    days_until_stockout = Column(Float, default=999.0)
    recommended_stock_level = Column(Integer, default=0)
    stock_status = Column(String, default="healthy")  # healthy, warning, low, critical, out_of_stock
    high_demand = Column(Boolean, default=False)
    last_calculated_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<InventoryMetric(product_id={self.product_id}, status='{self.stock_status}')>"


class FinancingScore(Base):
    """Seller creditworthiness, one row per store."""

    __tablename__ = "seller_financing_scores"

    id = Column(String(36), primary_key=True, default=_uuid)
    store_id = Column(String(36), ForeignKey("stores.id"), unique=True, nullable=False)

    sales_90d = Column(Float, default=0.0)
    return_rate = Column(Float, default=0.0)
    risk_score = Column(Float, default=50.0)
    reputation_score = Column(Float, default=50.0)
    eligibility_score = Column(Integer, default=0)
    max_eligible_amount = Column(Float, default=0.0)
    is_eligible = Column(Boolean, default=False)
    frozen = Column(Boolean, default=False)
    frozen_reason = Column(String)
    last_calculated_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<FinancingScore(store_id={self.store_id}, eligible={self.is_eligible})>"


class FinancingOffer(Base):
    """Revenue-based financing offer made to a seller."""

    __tablename__ = "financing_offers"

    id = Column(String(36), primary_key=True, default=_uuid)
    store_id = Column(String(36), ForeignKey("stores.id"), index=True, nullable=False)

    offered_amount = Column(Float, nullable=False)
    repayment_percentage = Column(Float, nullable=False)
    total_repayable = Column(Float, nullable=False)
    remaining_balance = Column(Float, nullable=False)
    amount_repaid = Column(Float, default=0.0)

    status = Column(String, index=True, default="offered")  # offered, active, repaid, defaulted
    missed_cycles = Column(Integer, default=0)
    cycles_evaluated = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    activated_at = Column(DateTime)
    closed_at = Column(DateTime)
    defaulted_at = Column(DateTime)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    repayments = relationship("FinancingRepayment")

    def __repr__(self):
        return f"<FinancingOffer(id={self.id}, store_id={self.store_id}, status='{self.status}')>"


class Notification(Base):
    """Seller-facing notification. Append-only."""

    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=_uuid)
    store_id = Column(String(36), ForeignKey("stores.id"), index=True, nullable=False)
    type = Column(String, index=True, nullable=False)  # ranking, inventory, financing, risk
    title = Column(String, nullable=False)
    body = Column(String)
    metadata_ = Column("metadata", JSON)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<Notification(id={self.id}, type='{self.type}', store_id={self.store_id})>"
