from flask import Blueprint
from sqlalchemy import text

from models import storage
from services.errors import storage_errors

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    """
    Health check (also pings the database)
    ---
    tags:
      - Health
    responses:
      200:
        description: API and database are up
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
      503:
        description: Database unavailable
    """
    session = storage.get_session()
    with storage_errors(session):
        session.execute(text("SELECT 1"))
    return {"status": "ok", "version": "1.0.0"}, 200
