"""
Database client configuration.
Uses Supabase for PostgreSQL (document tables) + Auth.

Clients are created on first use so importing the application never needs
network credentials; route handlers reach them through the dependencies in
``massmail.store`` and ``massmail.identity``.
"""

import os
from functools import lru_cache
from typing import Optional

from supabase import create_client, Client
from dotenv import load_dotenv

load_dotenv()


def _require_env() -> tuple[str, str]:
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")
    return url, key


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """Client for user-level operations (anon key, used for password sign-in)."""
    url, key = _require_env()
    return create_client(url, key)


@lru_cache(maxsize=1)
def get_supabase_admin() -> Optional[Client]:
    """
    Admin client for service-level operations (bypasses RLS).

    Returns None when SUPABASE_SERVICE_KEY is not configured.
    """
    url, _ = _require_env()
    service_key = os.getenv("SUPABASE_SERVICE_KEY")
    return create_client(url, service_key) if service_key else None
