"""
SQLAlchemy ORM models for the helpdesk triage engine.

Only the tables the engine reads or writes: tickets, their interactions
and status history, users, and the AI run log.
"""

from datetime import datetime

from sqlalchemy import (
    Column, String, Integer, Float, DateTime, Text, ForeignKey, Index,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    kind = Column(Integer, nullable=False, default=1)  # 1 customer, 2 technician, 3 admin, 4 bot
    created_at = Column(DateTime, default=datetime.utcnow)


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    number = Column(String(20), nullable=True, unique=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(Integer, nullable=False, default=1)
    priority = Column(Integer, nullable=False, default=2)
    category_id = Column(Integer, nullable=True)
    channel = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    interactions = relationship(
        "TicketInteraction", back_populates="ticket",
        cascade="all, delete-orphan", order_by="TicketInteraction.id",
    )
    status_history = relationship(
        "TicketStatusHistory", back_populates="ticket", cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_ticket_tenant_status", "tenant_id", "status"),
    )


class TicketInteraction(Base):
    __tablename__ = "ticket_interactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    author = Column(String(10), nullable=False)  # customer, ai, human
    author_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    text = Column(Text, nullable=False)
    ai_provider = Column(String(50), nullable=True)
    ai_model = Column(String(100), nullable=True)
    ai_confidence = Column(Float, nullable=True)
    ai_reasoning = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    ticket = relationship("Ticket", back_populates="interactions")


class TicketStatusHistory(Base):
    __tablename__ = "ticket_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    from_status = Column(Integer, nullable=False)
    to_status = Column(Integer, nullable=False)
    acting_user_id = Column(Integer, nullable=True)
    changed_at = Column(DateTime, default=datetime.utcnow)

    ticket = relationship("Ticket", back_populates="status_history")


class AiRunLog(Base):
    __tablename__ = "ai_run_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    ticket_id = Column(Integer, nullable=True, index=True)
    provider = Column(String(50), nullable=True)
    model = Column(String(100), nullable=True)
    prompt_hash = Column(String(64), nullable=False)
    input_tokens = Column(Integer, nullable=True)
    output_tokens = Column(Integer, nullable=True)
    latency_ms = Column(Float, nullable=True)
    cost_usd = Column(Float, nullable=True)
    confidence = Column(Float, nullable=True)
    outcome = Column(String(20), nullable=False)  # ok, exhausted
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_ai_run_tenant_created", "tenant_id", "created_at"),
    )
