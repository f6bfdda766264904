# app/models/subscription_order_model.py
from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey, func
from sqlalchemy.orm import relationship

from .base import Base

class SubscriptionOrder(Base):
    __tablename__ = 'subscription_orders'
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey('plans.id', ondelete="RESTRICT"), nullable=False)

    # pending -> approved | rejected | cancelled
    status = Column(String, default='pending', nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    gateway_reference = Column(String, index=True)
    created_at = Column(DateTime, server_default=func.now())

    plan = relationship("Plan")
