from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_principal, get_db
from app.core.session import Principal
from app.models.department_history import DepartmentHistory
from app.models.employee import Employee
from app.models.goal import GOAL_STATUSES, Goal
from app.models.performance import PerformanceReview
from app.schemas.report import DepartmentSummary, ReportSummary

router = APIRouter()


def _round(value) -> float | None:
    return round(float(value), 2) if value is not None else None


@router.get("/summary")
async def read_summary(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    """
    Dashboard figures: headcount, managers, per-department averages,
    goal progress and promotion candidates.
    """
    active = Employee.deleted_at.is_(None)

    headcount = (await db.execute(select(func.count(Employee.id)).where(active))).scalar() or 0
    managers = (
        await db.execute(select(func.count(Employee.id)).where(active, Employee.manager_id.is_not(None)))
    ).scalar() or 0

    staff_result = await db.execute(
        select(DepartmentHistory.department_name, func.count(func.distinct(Employee.employee_id)))
        .join(Employee, Employee.employee_id == DepartmentHistory.employee_id)
        .where(active, DepartmentHistory.is_active.is_(True))
        .group_by(DepartmentHistory.department_name)
    )
    staff = dict(staff_result.all())

    score_result = await db.execute(
        select(
            DepartmentHistory.department_name,
            func.avg(PerformanceReview.performance_score),
            func.count(PerformanceReview.performance_id),
        )
        .join(Employee, Employee.employee_id == DepartmentHistory.employee_id)
        .join(PerformanceReview, PerformanceReview.employee_id == Employee.employee_id)
        .where(active, DepartmentHistory.is_active.is_(True))
        .group_by(DepartmentHistory.department_name)
    )
    scores = {name: (avg, count) for name, avg, count in score_result.all()}

    departments = []
    for name in sorted(set(staff) | set(scores)):
        avg, count = scores.get(name, (None, 0))
        departments.append(DepartmentSummary(
            department=name,
            employees=staff.get(name, 0),
            average_score=_round(avg),
            reviews=count,
        ))

    goal_result = await db.execute(
        select(Goal.status, func.count(Goal.goal_id))
        .join(Employee, Employee.employee_id == Goal.employee_id)
        .where(active)
        .group_by(Goal.status)
    )
    goal_status = {s: 0 for s in GOAL_STATUSES}
    goal_status.update(dict(goal_result.all()))

    promotion_eligible = (
        await db.execute(
            select(func.count(func.distinct(PerformanceReview.employee_id)))
            .join(Employee, Employee.employee_id == PerformanceReview.employee_id)
            .where(active, PerformanceReview.promotion_eligible.is_(True))
        )
    ).scalar() or 0

    overall = (
        await db.execute(
            select(func.avg(PerformanceReview.performance_score))
            .join(Employee, Employee.employee_id == PerformanceReview.employee_id)
            .where(active)
        )
    ).scalar()

    return {
        "success": True,
        "data": ReportSummary(
            headcount=headcount,
            managers=managers,
            departments=departments,
            goal_status=goal_status,
            promotion_eligible=promotion_eligible,
            average_performance_score=_round(overall),
        ),
    }
