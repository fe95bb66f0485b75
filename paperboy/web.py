"""HTTP API exposing the aggregation service."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .errors import AuthenticationRequired, FeedFetchError, InvalidInput
from .preferences import parse_preferences_update
from .service import AggregationService

logger = logging.getLogger(__name__)

DEFAULT_IDENTITY_HEADER = "X-Forwarded-Email"


def get_service(request: Request) -> AggregationService:
    return request.app.state.service


def get_identity(request: Request) -> str:
    """Return the identity asserted by the fronting auth proxy."""
    header = request.app.state.identity_header
    identity = (request.headers.get(header) or "").strip()
    if not identity:
        raise AuthenticationRequired("Not authenticated")
    return identity


def create_app(
    service: AggregationService,
    identity_header: str = DEFAULT_IDENTITY_HEADER,
) -> FastAPI:
    """Build the FastAPI application around ``service``."""
    app = FastAPI(title="paperboy", description="Daily article aggregation")
    app.state.service = service
    app.state.identity_header = identity_header

    @app.exception_handler(AuthenticationRequired)
    async def authentication_required_handler(
        request: Request, exc: AuthenticationRequired
    ) -> JSONResponse:
        logger.info("Rejecting unauthenticated request to %s", request.url.path)
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "Not authenticated"},
        )

    @app.exception_handler(InvalidInput)
    async def invalid_input_handler(
        request: Request, exc: InvalidInput
    ) -> JSONResponse:
        logger.info("Invalid payload for %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)}
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        messages = [error.get("msg", "invalid value") for error in exc.errors()]
        logger.info("Malformed request to %s: %s", request.url.path, messages)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "; ".join(messages) or "Invalid request"},
        )

    @app.get("/articles")
    def get_articles(
        identity: str = Depends(get_identity),
        service: AggregationService = Depends(get_service),
    ):
        articles = service.get_articles_for(identity)
        return [article.to_dict() for article in articles]

    @app.get("/customFeed")
    def get_custom_feed(
        url: Optional[str] = None,
        paywalled: bool = False,
        service: AggregationService = Depends(get_service),
    ):
        if not url or not url.strip():
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=[])

        try:
            articles = service.fetch_custom_feed(url.strip(), paywalled=paywalled)
        except FeedFetchError as exc:
            logger.error("Error parsing custom feed: %s", exc)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=[]
            )
        return [article.to_dict() for article in articles]

    @app.get("/preferences")
    def get_preferences(
        identity: str = Depends(get_identity),
        service: AggregationService = Depends(get_service),
    ):
        prefs = service.resolve_preferences(identity)
        payload = prefs.to_dict()
        payload["available_publications"] = service.registry.keys()
        return payload

    @app.post("/preferences")
    def save_preferences(
        payload: Any = Body(default=None),
        identity: str = Depends(get_identity),
        service: AggregationService = Depends(get_service),
    ):
        prefs = parse_preferences_update(identity, payload)
        try:
            service.preferences.save(prefs)
        except SQLAlchemyError as exc:
            logger.error("Failed to save preferences for %s: %s", identity, exc)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Failed to save preferences"},
            )
        return {"message": "Preferences saved successfully"}

    return app
