"""Domain data contexts and stores built on the query cache."""
from .base import DataContext
from .usage import USAGE_KEY, UsageData
from .customer import CUSTOMER_KEYS, CustomerData, invalidate_customer_data
from .admin import ADMIN_KEYS, AdminData, invalidate_admin_data
from .pricing import PricingStore, pricing_loader

__all__ = [
    "DataContext",
    "USAGE_KEY",
    "UsageData",
    "CUSTOMER_KEYS",
    "CustomerData",
    "invalidate_customer_data",
    "ADMIN_KEYS",
    "AdminData",
    "invalidate_admin_data",
    "PricingStore",
    "pricing_loader",
]
