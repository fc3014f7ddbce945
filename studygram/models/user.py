"""
User model: profile plus subscription state mirrored from Stripe.
"""
from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from studygram.models.database import Base, new_id


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String, unique=True, nullable=False, index=True)
    full_name = Column(String, nullable=True)
    university = Column(String, nullable=True)
    major = Column(String, nullable=True)
    role = Column(String, nullable=False, default="student")  # student, admin
    stripe_customer_id = Column(String, nullable=True, index=True)
    subscription_plan = Column(String, nullable=True, default="free")  # free, semester, session
    subscription_status = Column(String, nullable=True, default="inactive")  # active, inactive, cancelled
    subscription_end_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<User(email='{self.email}', plan='{self.subscription_plan}')>"
