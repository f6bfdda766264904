# app/schemas/subscription_schema.py
from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from decimal import Decimal


class PlanActivation(BaseModel):
    """The payment boundary's "plan now active" fact."""
    user_id: int
    plan_id: int
    order_id: Optional[int] = None


class SubscriptionOrder(BaseModel):
    id: int
    user_id: int
    plan_id: int
    status: str
    total_amount: Decimal
    gateway_reference: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
