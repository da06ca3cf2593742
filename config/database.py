"""
Database connection management.

The Supabase client is created once per application lifespan (see main.py),
kept on app.state and handed to request handlers through get_db().
Services receive the client as a constructor argument.
"""

from typing import Any, Callable, Optional

from fastapi import Request
from supabase import create_client, Client
import structlog

from config.settings import Settings

logger = structlog.get_logger(__name__)

PAGE_SIZE = 1000  # PostgREST default max rows per response


class DatabaseConnectionError(Exception):
    """Failed to connect to database."""
    pass


def create_supabase_client(settings: Settings) -> Client:
    """
    Create a Supabase client for the application lifespan.

    Args:
        settings: Loaded application settings

    Returns:
        Client: Supabase client

    Raises:
        DatabaseConnectionError: If the client cannot be created
    """
    try:
        logger.info(
            "connecting_to_supabase",
            url=settings.supabase_url[:30] + "..."  # Log partial URL only
        )

        client = create_client(
            settings.supabase_url,
            settings.supabase_service_key or settings.supabase_key
        )

        logger.info("supabase_connected", status="success")
        return client

    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise DatabaseConnectionError(f"Failed to connect to Supabase: {e}") from e


def close_supabase_client(client: Optional[Client]) -> None:
    """Release the HTTP session held by the PostgREST client."""
    if client is None:
        return

    try:
        session = getattr(client.postgrest, "session", None)
        if session is not None:
            session.close()
        logger.info("supabase_client_closed")
    except Exception as e:
        logger.warning("supabase_client_close_failed", error=str(e))


def get_db(request: Request) -> Client:
    """FastAPI dependency returning the lifespan-owned client."""
    client = getattr(request.app.state, "db", None)
    if client is None:
        raise DatabaseConnectionError("Database client not initialized")
    return client


# ===================
# HELPER FUNCTIONS
# ===================

def fetch_all(build_query: Callable[[], Any], page_size: int = PAGE_SIZE) -> list[dict]:
    """
    Read every row of a select, one range of page_size rows at a time.

    build_query must return a fresh builder with a total order; the same
    select is issued once per page. Client errors propagate to the caller.

    Usage:
        rows = fetch_all(
            lambda: db.table("products").select("id, name").order("id")
        )
    """
    rows: list[dict] = []
    offset = 0

    while True:
        result = build_query().range(offset, offset + page_size - 1).execute()
        page = result.data or []
        rows.extend(page)

        if len(page) < page_size:
            return rows
        offset += page_size


def check_connection(client: Client) -> dict:
    """
    Check database connection health.

    Returns:
        dict: Connection status with details
    """
    try:
        products = client.table("products").select("id", count="exact").execute()

        return {
            "status": "healthy",
            "products_count": products.count
        }

    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e)
        }
