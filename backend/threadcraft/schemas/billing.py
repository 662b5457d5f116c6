"""Pydantic schemas for billing endpoints."""
from pydantic import BaseModel, Field


class CheckoutRequest(BaseModel):
    price_id: str = Field(min_length=1)


class CheckoutResponse(BaseModel):
    url: str
