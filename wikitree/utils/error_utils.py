from typing import Dict, Optional

from fastapi.responses import JSONResponse


def error_response(
    status_code: int,
    message: str,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Render a standardized JSON error body for API failures."""
    return JSONResponse(
        {"error": message, "status": status_code},
        status_code=status_code,
        headers=headers,
    )
