import logging
from typing import Awaitable, Callable

from fastapi import FastAPI, Request, Response

from .routers import availability
from .utils.request_id import REQUEST_ID_HEADER, bind_request_id, reset_request_id

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

app = FastAPI(title="Tour Availability API")


async def request_id_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    request_id, token = bind_request_id(request.headers.get(REQUEST_ID_HEADER))
    try:
        response = await call_next(request)
    finally:
        reset_request_id(token)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


app.middleware("http")(request_id_middleware)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(availability.router)
