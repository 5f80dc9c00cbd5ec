from fastapi.responses import JSONResponse


def envelope(data=None, message: str = "OK", status: str = "success") -> dict:
    return {"status": status, "message": message, "data": data}


def error_response(status_code: int, message: str, data=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=envelope(data, message, status="error"))
