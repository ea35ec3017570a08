"""Aggregate FastAPI routers for inclusion in the application."""
from . import webhook, admin, health

all_routers = [
    webhook.router,
    admin.router,
    health.router,
]
