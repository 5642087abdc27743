from flask import Blueprint

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
    """
    return {"status": "ok", "version": API_VERSION}, 200


@bp.get("/health/db")
def health_db():
    """
    Database round trip
    ---
    tags:
      - Health
    responses:
      200:
        description: Database reachable, returns its current time
      500:
        description: Database unreachable
    """
    db_time = storage.now()
    return {"status": "ok", "db_time": str(db_time)}, 200
