"""CORS middleware configuration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from campus.config import Settings


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Configure CORS for the web and mobile front-ends.

    Preflight results are cached for ten minutes; the request id and
    rate limit headers are exposed so clients can report them.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-Id", "X-Device-Id"],
        expose_headers=["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit"],
        max_age=600,
    )
