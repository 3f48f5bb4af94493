from __future__ import annotations

import uuid
from contextvars import ContextVar, Token
from typing import Optional

REQUEST_ID_HEADER = "X-Request-ID"

_request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    return _request_id_ctx.get()


def bind_request_id(incoming: str | None) -> tuple[str, Token]:
    """Bind the caller's request id (or a fresh one) to the current context."""
    request_id = incoming.strip() if incoming and incoming.strip() else uuid.uuid4().hex
    return request_id, _request_id_ctx.set(request_id)


def reset_request_id(token: Token) -> None:
    _request_id_ctx.reset(token)
