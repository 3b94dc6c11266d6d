from typing import Any, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def api_response(
    *,
    data: Optional[Any] = None,
    message: str = "Operation successful",
    status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    """
    Wrap a payload in the envelope every audit endpoint returns:
    {status_code, status, message, data}. Pydantic models and dataclasses
    are encoded through jsonable_encoder.
    """
    body = {
        "status_code": status_code,
        "status": "error" if status_code >= 400 else "success",
        "message": message,
        "data": {} if data is None else jsonable_encoder(data),
    }
    return JSONResponse(status_code=status_code, content=body)
