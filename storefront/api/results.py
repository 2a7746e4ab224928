# storefront/api/results.py
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from storefront.domain.errors import ShopError, ValidationFailed
from storefront.domain.schemas import ActionResult

GENERIC_ERROR = "Something went wrong. Please try again."


def envelope(result: ActionResult, status_code: int = 200) -> JSONResponse:
    content = {"success": result.success}
    for key in ("data", "error", "field_errors"):
        value = getattr(result, key)
        if value is not None:
            content[key] = jsonable_encoder(value)
    return JSONResponse(status_code=status_code, content=content)


def ok(data=None, status_code: int = 200) -> JSONResponse:
    return envelope(ActionResult(success=True, data=data), status_code)


def fail(error: ShopError) -> JSONResponse:
    field_errors = error.field_errors if isinstance(error, ValidationFailed) else None
    return envelope(
        ActionResult(success=False, error=error.message, field_errors=field_errors),
        error.status_code,
    )


def fail_unexpected() -> JSONResponse:
    return envelope(ActionResult(success=False, error=GENERIC_ERROR), 500)
