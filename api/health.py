from datetime import datetime, timezone

from flask import Blueprint, current_app

from models import storage

bp = Blueprint("health", __name__)

API_VERSION = "1.0.0"


@bp.get("/health")
def health():
    """
    Health check
    ---
    tags:
      - Health
    responses:
      200:
        description: API is up
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
            database:
              type: object
    """
    return {
        "status": "ok",
        "version": API_VERSION,
        "environment": current_app.config.get("APP_ENV", "dev"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": {"status": storage.status()},
    }, 200
