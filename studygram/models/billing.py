"""
Subscription plans and per-user usage counters.
"""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.sql import func

from studygram.models.database import Base, JSONType, new_id


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False, unique=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    duration_months = Column(Integer, nullable=False, default=1)
    ai_queries_limit = Column(Integer, nullable=True)
    audio_minutes_limit = Column(Integer, nullable=True)
    project_generations_limit = Column(Integer, nullable=True)
    features = Column(JSONType, nullable=True)
    stripe_price_id = Column(String, nullable=True, unique=True)

    def __repr__(self):
        return f"<SubscriptionPlan(name='{self.name}', price_id='{self.stripe_price_id}')>"


class UsageStat(Base):
    __tablename__ = "usage_stats"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    ai_queries_used = Column(Integer, nullable=False, default=0)
    audio_minutes_used = Column(Integer, nullable=False, default=0)
    project_generations_used = Column(Integer, nullable=False, default=0)
    reset_date = Column(DateTime(timezone=True), server_default=func.now())
