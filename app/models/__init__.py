"""
SQLAlchemy models for stores, their customers and orders, plus ingestion bookkeeping.
All model and enum definitions live here for simplicity and to avoid circular imports.
"""
from sqlalchemy import (
    Column,
    String,
    Integer,
    DateTime,
    ForeignKey,
    ForeignKeyConstraint,
    Numeric,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
import enum


class SyncJobStatus(str, enum.Enum):
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class Store(Base):
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop_domain = Column("shop_domain", String, unique=True, nullable=False, index=True)
    # NULL until the merchant saves an Admin API token; NULL stores are not synced
    access_token = Column("access_token", String, nullable=True)
    created_at = Column("created_at", DateTime, server_default=func.now())
    updated_at = Column("updated_at", DateTime, server_default=func.now(), onupdate=func.now())

    customers = relationship("Customer", back_populates="store")
    orders = relationship("Order", back_populates="store")
    users = relationship("User", back_populates="store")


class Customer(Base):
    """Shopify customer; external ids are only unique within a store."""
    __tablename__ = "customers"

    id = Column(String, primary_key=True)
    store_id = Column("store_id", Integer, ForeignKey("stores.id", ondelete="CASCADE"), primary_key=True)
    email = Column(String, nullable=True)
    first_name = Column("first_name", String, nullable=True)
    last_name = Column("last_name", String, nullable=True)
    created_at = Column("created_at", DateTime, server_default=func.now())
    updated_at = Column("updated_at", DateTime, server_default=func.now(), onupdate=func.now())

    store = relationship("Store", back_populates="customers")
    orders = relationship("Order", back_populates="customer", viewonly=True)


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        ForeignKeyConstraint(
            ["customer_id", "store_id"],
            ["customers.id", "customers.store_id"],
            name="fk_orders_customer_store",
        ),
    )

    id = Column(String, primary_key=True)
    store_id = Column("store_id", Integer, ForeignKey("stores.id", ondelete="CASCADE"), primary_key=True)
    customer_id = Column("customer_id", String, nullable=False, index=True)
    total_price = Column("total_price", Numeric(14, 4), nullable=False)
    # Shopify created_at, normalized to naive UTC
    created_at = Column("created_at", DateTime, nullable=False, index=True)

    store = relationship("Store", back_populates="orders")
    customer = relationship("Customer", back_populates="orders", viewonly=True)


class User(Base):
    """Dashboard login principal (login itself is handled outside this service)."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password = Column(String, nullable=False)
    store_id = Column("store_id", Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False)
    created_at = Column("created_at", DateTime, server_default=func.now())

    store = relationship("Store", back_populates="users")


class WebhookEvent(Base):
    """One row per received Shopify webhook (processing outcome for operators)."""
    __tablename__ = "webhook_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop_domain = Column("shop_domain", String, nullable=True, index=True)
    topic = Column(String, nullable=False, index=True)
    payload_summary = Column("payload_summary", String, nullable=True)
    processed_at = Column("processed_at", DateTime, nullable=True)
    error = Column(String, nullable=True)
    created_at = Column("created_at", DateTime, server_default=func.now(), index=True)


class SyncJob(Base):
    """One store's slice of one polling sync run."""
    __tablename__ = "sync_jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    store_id = Column("store_id", Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(SQLEnum(SyncJobStatus), default=SyncJobStatus.RUNNING, nullable=False)
    started_at = Column("started_at", DateTime, nullable=True)
    finished_at = Column("finished_at", DateTime, nullable=True)
    records_processed = Column("records_processed", Integer, default=0)
    records_skipped = Column("records_skipped", Integer, default=0)
    error_message = Column("error_message", String, nullable=True)

    store = relationship("Store")
