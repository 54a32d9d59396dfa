"""
Pydantic schemas for request/response validation (Http/Requests).
"""
from typing import List, Optional

from pydantic import BaseModel, Field, validator


# Store Schemas
class SaveTokenRequest(BaseModel):
    storeId: int
    apiToken: str

    @validator("apiToken")
    def validate_api_token(cls, v):
        v = (v or "").strip()
        if not v:
            raise ValueError("API token is required")
        return v


class SaveTokenResponse(BaseModel):
    message: str
    storeId: int


# Analytics Schemas
class StatsResponse(BaseModel):
    totalCustomers: int
    totalOrders: int
    totalRevenue: float


class TopCustomerResponse(BaseModel):
    name: str
    total: float


class OrdersByDateResponse(BaseModel):
    date: str
    orders: int
    revenue: float


# Sync Schemas
class SyncStoreResult(BaseModel):
    storeId: int
    shopDomain: str
    success: bool
    synced: int = 0
    skipped: int = 0
    error: Optional[str] = None


class SyncRunResponse(BaseModel):
    startedAt: str
    finishedAt: str
    stores: int
    synced: int
    failed: int
    results: List[SyncStoreResult] = Field(default_factory=list)
