"""
AI productivity tip endpoints. All require a bearer token.
"""
from uuid import UUID
from ninja import Router
from ninja.errors import HttpError
from django.http import HttpRequest

from apps.core.throttling import AIRateThrottle, ApiRateThrottle
from apps.identity.security import require_auth
from apps.tasks import services as task_services
from .dtos import (
    ComprehensiveResponse,
    InsightResponse,
    QuotaErrorResponse,
    TaskTipResponse,
    TipRequest,
    TipResponse,
    UsageResponse,
)
from .services import QuotaExceeded, priority_breakdown, tip_service

router = Router(tags=["AI"], throttle=[ApiRateThrottle(), AIRateThrottle()])

DEFAULT_CATEGORY = 'general'


@router.post("/tip", response=TipResponse, auth=None)
def generate_tip(request: HttpRequest, payload: TipRequest):
    user = require_auth(request)
    tip = tip_service.generate_tip(
        payload.task_description,
        user.id,
        priority=payload.priority,
        category=payload.category or DEFAULT_CATEGORY,
    )
    return {"success": True, "data": {"tip": tip, "usage": tip_service.usage(user.id)}}


@router.post(
    "/tip/comprehensive",
    response={200: ComprehensiveResponse, 429: QuotaErrorResponse},
    auth=None,
)
def generate_comprehensive_tips(request: HttpRequest, payload: TipRequest):
    """
    Planning, time management and focus tips for one task.

    Returns 429 when fewer than three tips of quota remain.
    """
    user = require_auth(request)
    try:
        tips = tip_service.comprehensive_tips(
            payload.task_description,
            user.id,
            priority=payload.priority,
            category=payload.category or DEFAULT_CATEGORY,
        )
    except QuotaExceeded as e:
        return 429, {"success": False, "error": str(e), "usage": e.usage}

    return {"success": True, "data": {"tips": tips, "usage": tip_service.usage(user.id)}}


@router.post("/tasks/{task_id}/tip", response=TaskTipResponse, auth=None)
def generate_task_tip(request: HttpRequest, task_id: UUID):
    user = require_auth(request)
    task = task_services.get_task(task_id)
    if not task:
        raise HttpError(404, "Task not found")
    if not task_services.has_access(user, task):
        raise HttpError(403, "Access denied to this task")

    tip = tip_service.generate_tip(
        f"{task.title}: {task.description}",
        user.id,
        priority=task.priority,
        category=task.category,
    )
    return {
        "success": True,
        "data": {"tip": tip, "task": task, "usage": tip_service.usage(user.id)},
    }


@router.get("/insights/daily", response=InsightResponse, auth=None)
def daily_insights(request: HttpRequest):
    user = require_auth(request)
    tasks = task_services.tasks_due_today(user)
    insight = tip_service.daily_insight(user.id, tasks)
    return {
        "success": True,
        "data": {
            "insight": insight,
            "tasks_count": len(tasks),
            "task_breakdown": priority_breakdown(tasks) if tasks else None,
            "usage": tip_service.usage(user.id),
        },
    }


@router.get("/usage", response=UsageResponse, auth=None)
def get_usage(request: HttpRequest):
    user = require_auth(request)
    return {"success": True, "data": {"usage": tip_service.usage(user.id)}}
