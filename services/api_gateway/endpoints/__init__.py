"""
API Gateway endpoint routers — mounted by the main app.
"""

from services.api_gateway.endpoints.workload import router as workload_router
from services.api_gateway.endpoints.stats import router as stats_router
from services.api_gateway.endpoints.health import router as health_router

__all__ = [
    "workload_router",
    "stats_router",
    "health_router",
]
