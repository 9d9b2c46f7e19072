"""
Request-scoped dependencies shared by the routers.
"""

from datetime import date, datetime

from fastapi import Header, HTTPException, Query

from retail_ledger.actor import ActorContext
from retail_ledger.exceptions import RetailLedgerError


def get_actor(x_actor_id: int | None = Header(default=None)) -> ActorContext:
    """
    The acting user, from the X-Actor-Id header.

    Authentication happens upstream; a request without the header
    runs as the bootstrap actor.
    """
    return ActorContext(user_id=x_actor_id)


def get_as_of(
    as_of: str | None = Query(
        default=None,
        description="YYYY-MM-DD (through the end of that day) or an ISO timestamp",
    ),
) -> date | datetime | None:
    """
    Parse the ``as_of`` query parameter.

    Typed as a plain string so a bare date reaches the balance
    calculator as a ``date``; letting pydantic coerce it would turn
    it into midnight and drop everything posted that day.
    """
    if as_of is None:
        return None
    try:
        if len(as_of) == 10:
            return date.fromisoformat(as_of)
        return datetime.fromisoformat(as_of)
    except ValueError:
        raise HTTPException(
            status_code=422,
            detail={
                "code": "INVALID_AS_OF",
                "message": f"as_of must be a date or ISO timestamp, got {as_of!r}",
                "retryable": False,
            },
        )


def http_error(error: RetailLedgerError) -> HTTPException:
    """Map an engine error to its HTTP status and structured detail."""
    return HTTPException(status_code=error.http_status, detail=error.to_dict())
