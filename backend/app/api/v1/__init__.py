from fastapi import APIRouter, Depends

from app.api.deps import get_current_principal
from app.api.v1 import (
    auth,
    departments,
    employee_history,
    employees,
    goals,
    performance,
    reports,
)

# Every feature router requires a session; refreshed cookies ride on the response
protected_router = APIRouter(dependencies=[Depends(get_current_principal)])
protected_router.include_router(employees.router, prefix="/employees", tags=["employees"])
protected_router.include_router(employee_history.router, prefix="/employee-history", tags=["employee-history"])
protected_router.include_router(departments.router, prefix="/departments", tags=["departments"])
protected_router.include_router(performance.router, prefix="/performance-history", tags=["performance"])
protected_router.include_router(goals.router, prefix="/goals", tags=["goals"])
protected_router.include_router(reports.router, prefix="/reports", tags=["reports"])

api_router = APIRouter()
# Auth stays reachable without a session
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(protected_router)
