from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    JSON,
    DateTime,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class CheckoutSessionRecord(Base):
    """
    Persists checkout sessions to the database so they survive server restarts.
    """
    __tablename__ = "checkout_sessions"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String, unique=True, nullable=False, index=True)  # UUID string

    # Browser-side storage namespace the session belongs to
    client_id = Column(String, nullable=True, index=True)

    # Current step, duplicated out of the state JSON for querying
    step = Column(String, nullable=False, default="cart", index=True)

    # Whole CheckoutSession aggregate as JSON
    state = Column(JSON, nullable=False, default=dict)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class ClientStorageEntry(Base):
    """
    Client-local key/value storage (checkout draft, pending payment marker,
    last payment outcome, bank transfer summary), one row per namespaced key.
    """
    __tablename__ = "client_storage"

    id = Column(Integer, primary_key=True, index=True)
    namespace = Column(String, nullable=False, index=True)
    key = Column(String, nullable=False)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("namespace", "key", name="uq_client_storage_namespace_key"),
    )
