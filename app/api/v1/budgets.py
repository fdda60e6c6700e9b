"""
Budget API endpoints (thin handlers over the budget engine)
"""
from datetime import date as date_type

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_current_user
from app.infrastructure.db.models import User
from app.application.budget_engine import BudgetingEngine, BudgetSummary
from app.application.budget import (
    BudgetNotFoundError, BudgetValidationError, CategoryNotFoundError,
    EnsureBudgetUseCase, SetAllocationUseCase, CopyPreviousMonthUseCase,
    get_owned_budget, validate_period,
)
from app.utils.validation import validate_and_normalize_amount


router = APIRouter(prefix="/api/v1/budgets", tags=["budgets"])


# === Request/Response models ===

class CreateBudgetRequest(BaseModel):
    month: int
    year: int


class AllocateRequest(BaseModel):
    budget_id: int
    category_id: int
    amount: str  # Decimal as string; numbers are accepted too

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, v) -> str:
        """Normalize the amount (dot/comma, at most 2 decimal places)"""
        if isinstance(v, bool) or not isinstance(v, (str, int, float)):
            raise ValueError("amount must be a number")
        return validate_and_normalize_amount(str(v), max_decimal_places=2)


class CopyRequest(BaseModel):
    to_budget_id: int


class GoalResponse(BaseModel):
    id: int
    goal_type: str
    target_amount: str | None
    target_date: date_type | None
    monthly_amount: str | None


class BudgetCategoryResponse(BaseModel):
    id: int
    name: str
    group_name: str
    is_system: bool
    budgeted_amount: str
    activity_amount: str
    available_amount: str
    goal: GoalResponse | None


class BudgetResponse(BaseModel):
    id: int
    month: int
    year: int
    to_be_budgeted: str
    categories: list[BudgetCategoryResponse]


class BudgetEnvelope(BaseModel):
    budget: BudgetResponse


# === Helpers ===

def _money(value) -> str | None:
    return None if value is None else str(value)


def _to_response(summary: BudgetSummary) -> BudgetEnvelope:
    return BudgetEnvelope(budget=BudgetResponse(
        id=summary.id,
        month=summary.month,
        year=summary.year,
        to_be_budgeted=str(summary.to_be_budgeted),
        categories=[
            BudgetCategoryResponse(
                id=row.id,
                name=row.name,
                group_name=row.group_name,
                is_system=row.is_system,
                budgeted_amount=str(row.budgeted_amount),
                activity_amount=str(row.activity_amount),
                available_amount=str(row.available_amount),
                goal=GoalResponse(
                    id=row.goal.id,
                    goal_type=row.goal.goal_type,
                    target_amount=_money(row.goal.target_amount),
                    target_date=row.goal.target_date,
                    monthly_amount=_money(row.goal.monthly_amount),
                ) if row.goal else None,
            )
            for row in summary.categories
        ],
    ))


# === Endpoints ===

@router.get("", response_model=BudgetEnvelope)
def get_budget(
    month: int,
    year: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Budget snapshot of a month; 404 when the month has no budget yet"""
    try:
        validate_period(month, year)
        summary = BudgetingEngine(db).get_budget_summary(user.id, month, year)
    except BudgetValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BudgetNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _to_response(summary)


@router.post("", response_model=BudgetEnvelope)
def create_budget(
    req: CreateBudgetRequest,
    response: Response,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Create the month's budget (idempotent) and return its snapshot"""
    try:
        budget, created = EnsureBudgetUseCase(db).execute(user.id, req.month, req.year)
    except BudgetValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if created:
        response.status_code = status.HTTP_201_CREATED
    summary = BudgetingEngine(db).get_budget_summary(user.id, budget.month, budget.year)
    return _to_response(summary)


@router.post("/allocate", response_model=BudgetEnvelope)
def allocate(
    req: AllocateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Set a category's budgeted amount and return the recomputed month"""
    try:
        SetAllocationUseCase(db).execute(
            user_id=user.id,
            budget_id=req.budget_id,
            category_id=req.category_id,
            amount=req.amount,
        )
        budget = get_owned_budget(db, user.id, req.budget_id)
        summary = BudgetingEngine(db).get_budget_summary(user.id, budget.month, budget.year)
    except BudgetValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (BudgetNotFoundError, CategoryNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _to_response(summary)


@router.post("/copy", response_model=BudgetEnvelope)
def copy_previous_month(
    req: CopyRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Copy last month's budgeted amounts into the target budget"""
    try:
        summary = CopyPreviousMonthUseCase(db).execute(user_id=user.id, budget_id=req.to_budget_id)
    except BudgetNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _to_response(summary)
