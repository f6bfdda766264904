# app/models/plan_model.py
from sqlalchemy import Column, Integer, String, Boolean, Index, DateTime, Numeric, Text, JSON, func
from .base import Base

class Plan(Base):
    __tablename__ = 'plans'
    __table_args__ = (
        Index("ix_plans_is_active", "is_active"),
        Index("ix_plans_price", "price"),
    )
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    duration_in_days = Column(Integer, nullable=False)
    # Always written from a validated PlanFeatures; read through `feature_set`.
    features = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def feature_set(self):
        from app.schemas.plan_schema import PlanFeatures
        return PlanFeatures.model_validate(self.features or {})
