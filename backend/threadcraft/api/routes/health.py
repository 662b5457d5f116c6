"""Health check endpoints."""
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from threadcraft.db.session import check_db_connection

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns status and database reachability.
    """
    if not check_db_connection():
        return JSONResponse({"status": "degraded", "database": False}, status_code=503)
    return {"status": "ok", "database": True}
