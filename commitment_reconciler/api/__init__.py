from .base import ApiResponse, InventoryAPI
from .client import CommitmentsClient
from .http_policy import HttpRetryPolicy

__all__ = ["ApiResponse", "InventoryAPI", "CommitmentsClient", "HttpRetryPolicy"]
