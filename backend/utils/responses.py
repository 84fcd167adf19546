from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def success_response(data=None, message="OK", status=200, pagination=None):
    content = {
        "success": True,
        "data": data if data is not None else {},
        "message": message,
    }
    if pagination is not None:
        content["pagination"] = pagination
    return JSONResponse(status_code=status, content=jsonable_encoder(content))


def error_response(error, status=400, code="BAD_REQUEST", details=None):
    content = {
        "success": False,
        "error": error,
        "code": code,
    }
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status, content=jsonable_encoder(content))


def calculate_pagination(page: int, limit: int, total: int) -> dict:
    total_pages = (total + limit - 1) // limit if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }
