"""Book-search proxy route."""

from typing import Any

import requests
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from imgstudio.core.config import Config, get_config
from imgstudio.logging_config import get_logger
from imgstudio.utils.exceptions import UpstreamError

logger = get_logger(__name__)

MISSING_QUERY_MESSAGE = 'Missing query parameter "q"'
FETCH_FAILED_MESSAGE = "Failed to fetch books"

router = APIRouter()


def search_books(query: str, max_results: int, config: Config) -> dict[str, Any]:
    """
    Run a volumes search upstream and return its JSON body unchanged.

    Raises:
        UpstreamError: On transport errors, non-2xx answers, or a non-JSON body.
    """
    params: dict[str, Any] = {"q": query, "maxResults": max_results}
    if config.books_api_key:
        params["key"] = config.books_api_key
    logger.debug("Books search q=%r maxResults=%d", query, max_results)
    try:
        response = requests.get(config.books_base_url, params=params, timeout=config.books_timeout)
    except requests.exceptions.RequestException as e:
        raise UpstreamError(f"Books upstream unreachable: {e}") from e
    if not response.ok:
        raise UpstreamError(
            f"Books upstream returned {response.status_code}",
            status_code=response.status_code,
            response=response.text,
        )
    try:
        return response.json()
    except ValueError as e:
        raise UpstreamError(
            f"Books upstream returned invalid JSON: {e}", response=response.text
        ) from e


def _request_config(request: Request) -> Config:
    return getattr(request.app.state, "config", None) or get_config()


@router.get("/books")
def books(
    q: str | None = Query(None),
    max_results: int | None = Query(None, alias="maxResults"),
    config: Config = Depends(_request_config),
):
    """Search books; returns the upstream JSON verbatim."""
    if q is None or not q.strip():
        return JSONResponse(status_code=400, content={"error": MISSING_QUERY_MESSAGE})
    if max_results is None:
        max_results = config.books_default_max_results
    try:
        return search_books(q, max_results, config)
    except UpstreamError as e:
        logger.error("Error fetching books: %s %s", e, e.response[:500])
        return JSONResponse(status_code=500, content={"error": FETCH_FAILED_MESSAGE})
