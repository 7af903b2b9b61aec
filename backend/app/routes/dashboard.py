# Overview: Flask API routes for the dashboard; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..services import dashboard_service
from ..validation import ValidationError
from ..responses import ok, error_response
from ..decorators import require_auth

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


def _limit(default: int = 10) -> int:
    limit = request.args.get("limit", type=int) or default
    return min(max(limit, 1), 100)


@dashboard_bp.get("/stats")
@require_auth
def stats():
    return ok(dashboard_service.dashboard_stats(actor=g.current_user))


@dashboard_bp.get("/recent-activities")
@require_auth
def recent_activities():
    return ok(dashboard_service.recent_activities(actor=g.current_user, limit=_limit()))


@dashboard_bp.get("/charts/revenue")
@require_auth
def revenue_chart():
    try:
        return ok(dashboard_service.revenue_chart(
            actor=g.current_user,
            period=request.args.get("period", "month"),
        ))
    except ValidationError as e:
        return error_response(e)


@dashboard_bp.get("/charts/top-distributors")
@require_auth
def top_distributors():
    return ok(dashboard_service.top_distributors(actor=g.current_user, limit=_limit()))


@dashboard_bp.get("/performance")
@require_auth
def performance():
    try:
        return ok(dashboard_service.performance(
            actor=g.current_user,
            period=request.args.get("period", "month"),
        ))
    except ValidationError as e:
        return error_response(e)
