"""
Pydantic models for the dashboard API payloads.

Field names are snake_case; the API sends camelCase, handled by the alias
generator. Models accept either form.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base model for API payloads"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ===== CUSTOMER SCHEMAS =====

class CustomerProfile(ApiModel):
    id: str
    email: str
    business_name: str
    is_verified: bool = False
    verification_status: str = "pending"
    phone_number: Optional[str] = None
    address: Optional[str] = None
    created_at: Optional[str] = None


class LastTransaction(ApiModel):
    amount: float
    type: str
    timestamp: str


class WalletData(ApiModel):
    balance: float
    currency: str = "NGN"
    pending_balance: Optional[float] = None
    last_transaction: Optional[LastTransaction] = None


class EndpointCount(ApiModel):
    endpoint: str
    count: int


class UsageStats(ApiModel):
    """API call counters for one customer."""
    requests_today: int = 0
    requests_this_month: int = 0
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    success_rate: float = 0
    error_rate: float = 0
    popular_endpoints: List[EndpointCount] = []
    last_call_at: Optional[str] = None


class ApiKey(ApiModel):
    id: str
    name: str
    key: str
    permissions: List[str] = []
    is_active: bool = True
    created_at: Optional[str] = None
    last_used: Optional[str] = None


# ===== ADMIN SCHEMAS =====

class DashboardStats(ApiModel):
    total_customers: int = 0
    total_revenue: float = 0
    total_api_calls: int = 0
    active_customers: int = 0
    pending_verifications: int = 0
    system_health: Literal["healthy", "warning", "critical"] = "healthy"


class CustomerSummary(ApiModel):
    """Row of the admin customer table"""
    id: str
    email: str
    business_name: str
    is_verified: bool = False
    status: Literal["active", "suspended", "pending"] = "pending"
    usage: int = 0
    wallet_balance: float = 0
    created_at: Optional[str] = None


class SystemMetrics(ApiModel):
    cpu_usage: float = 0
    memory_usage: float = 0
    disk_usage: float = 0
    api_response_time: float = 0
    error_rate: float = 0
    uptime: float = 0


# ===== PRICING SCHEMAS =====

class ServicePricing(ApiModel):
    """Per-call price of one API service (amounts in kobo)."""
    id: str
    service_code: str
    service_name: str
    price_kobo: int
    description: Optional[str] = None
    category: Optional[str] = None
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
