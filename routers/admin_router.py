"""
Admin Router - user export guarded by the admin token
"""

import hmac
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from backend.utils.errors import AuthenticationError, BadRequestError
from backend.utils.responses import success_response
from config import settings
from database import get_db
from models.admin import AdminExportAction
from services.admin_export_service import AdminExportService, EXPORT_HEADERS
from utils.shared_utils import utc_now

logger = logging.getLogger(__name__)

admin_router = APIRouter(prefix="/api/admin", tags=["admin"])


async def require_admin(x_admin_token: Optional[str] = Header(None, alias="x-admin-token")) -> None:
    expected = settings.admin_secret_token
    if not expected or not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        logger.warning("Rejected admin request with missing or invalid token")
        raise AuthenticationError("Unauthorized")


@admin_router.get("/export-users", dependencies=[Depends(require_admin)])
async def export_users(
    export_format: str = Query("json", alias="format"),
    db: AsyncSession = Depends(get_db)
):
    rows = await AdminExportService(db).rows()
    if export_format == "csv":
        filename = f"users-{utc_now().date().isoformat()}.csv"
        return Response(
            content=AdminExportService.to_csv(rows),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    return success_response({"headers": EXPORT_HEADERS, "users": rows, "count": len(rows)})


@admin_router.post("/export-users", dependencies=[Depends(require_admin)])
async def export_users_action(request: AdminExportAction, db: AsyncSession = Depends(get_db)):
    """action=setup returns the column headers, action=sync returns every formatted row"""
    if request.action == "setup":
        return success_response({"headers": EXPORT_HEADERS}, message="Export headers ready")
    if request.action == "sync":
        rows = await AdminExportService(db).rows()
        logger.info(f"Admin export sync of {len(rows)} users")
        return success_response({"users": rows, "count": len(rows)}, message=f"Exported {len(rows)} users")
    raise BadRequestError("Invalid action. Use 'setup' or 'sync'")
