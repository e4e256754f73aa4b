"""Exception handlers that keep validation failures in a field -> reason shape."""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from bookkeeper.services.rule_validator import RuleValidationError


def _field_name(loc) -> str:
    # Drop the "body"/"query" prefix FastAPI puts in front of the field
    parts = [str(part) for part in loc if part not in ("body", "query", "path", "header")]
    return ".".join(parts) or "request"


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = {}
    for error in exc.errors():
        errors.setdefault(_field_name(error.get("loc", ())), error.get("msg", "is invalid"))
    return JSONResponse(status_code=422, content={"detail": {"errors": errors}})


async def handle_rule_validation_error(request: Request, exc: RuleValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": {"errors": exc.errors}})
