"""Domain error to RFC 7807 problem details mapping.

Routes catch `DecisionEngineError` and re-raise the result of
`problem_from_error` with `from None`:

    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
"""

from fastapi import HTTPException, Request
from structlog import get_logger

from decision_engine.domain.exceptions import DecisionEngineError

logger = get_logger(__name__)

ERROR_TYPE_BASE = "urn:decision-engine:error"

# error_kind -> (HTTP status, title)
_PROBLEMS: dict[str, tuple[int, str]] = {
    "not_found": (404, "Not Found"),
    "validation_error": (422, "Validation Failed"),
    "phase_rule_violation": (409, "Phase Rule Violation"),
    "concurrency_conflict": (409, "Concurrency Conflict"),
    "permission_denied": (403, "Permission Denied"),
    "infrastructure_failure": (503, "Service Unavailable"),
}


def problem_from_error(error: DecisionEngineError, request: Request) -> HTTPException:
    """Build the HTTPException carrying an RFC 7807 body for `error`."""
    status, title = _PROBLEMS.get(error.error_kind, (500, "Internal Error"))
    detail: dict[str, object] = {
        "type": f"{ERROR_TYPE_BASE}:{error.error_kind.replace('_', '-')}",
        "title": title,
        "status": status,
        "detail": str(error),
        "instance": str(request.url),
        "error_kind": error.error_kind,
    }
    headers = None
    if error.error_kind == "concurrency_conflict":
        detail["retryable"] = True
    if status == 503:
        headers = {"Retry-After": "30"}
    if status >= 500:
        logger.error(
            "request_domain_failure",
            error_kind=error.error_kind,
            error=str(error),
            path=request.url.path,
        )
    return HTTPException(status_code=status, detail=detail, headers=headers)


def not_found_problem(request: Request, message: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={
            "type": f"{ERROR_TYPE_BASE}:not-found",
            "title": "Not Found",
            "status": 404,
            "detail": message,
            "instance": str(request.url),
            "error_kind": "not_found",
        },
    )
