"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import (
    obligations, recurring_obligations, settlements, accounting, owners
)

router = APIRouter()

# Obligations, payments and the monthly/overdue jobs
router.include_router(obligations.router)

# Recurring templates
router.include_router(recurring_obligations.router)

# Owner settlements
router.include_router(settlements.router)

# Owner running balances
router.include_router(owners.router)

# Agency books
router.include_router(accounting.router)
