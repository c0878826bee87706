from fastapi import FastAPI, Request
from starlette.responses import Response


ROBOTS_HEADER = "noindex, nofollow, noarchive"
PRIVATE_PREFIXES = ("/api/",)


def install_security_headers(app: FastAPI, *, private_prefixes: tuple[str, ...] = PRIVATE_PREFIXES) -> None:
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Robots-Tag"] = ROBOTS_HEADER
        response.headers["X-Content-Type-Options"] = "nosniff"
        if request.url.path.startswith(private_prefixes):
            # Request payloads carry student contact data.
            response.headers["Cache-Control"] = "no-store"
        return response
