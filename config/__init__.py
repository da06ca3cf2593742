"""
Configuration module.

Exports:
    get_settings: Function to get settings (for dependency injection)
    Settings: Settings model
    create_supabase_client: Build the lifespan-owned client
    get_db: FastAPI dependency returning the client
    check_connection: Health check function
"""

from config.settings import get_settings, Settings
from config.database import (
    create_supabase_client,
    close_supabase_client,
    get_db,
    check_connection,
    fetch_all,
    PAGE_SIZE,
    DatabaseConnectionError
)

__all__ = [
    # Settings
    "get_settings",
    "Settings",

    # Database
    "create_supabase_client",
    "close_supabase_client",
    "get_db",
    "check_connection",
    "fetch_all",
    "PAGE_SIZE",
    "DatabaseConnectionError",
]
