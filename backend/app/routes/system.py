# backend/app/routes/system.py
"""
System health endpoint.

GET /api/health answers without authentication so load balancers and the
frontend can probe the API.
"""

from flask import Blueprint, current_app, jsonify

from app.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")


@system_bp.get("/health")
def health():
    return jsonify({
        "status": "OK",
        "timestamp": to_utc_z(utcnow()),
        "version": current_app.config.get("APP_VERSION", "1.0.0"),
    })
