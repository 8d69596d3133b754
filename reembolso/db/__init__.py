"""
Database access layer for Reembolso.

Data routes use a Supabase client created per request with the caller's
access token, so every query runs under that caller's Row Level Security scope.

DO NOT define table schemas, migrations, or RLS policies here.
"""

from .client import create_backend_client, create_user_client, execute

__all__ = ["create_backend_client", "create_user_client", "execute"]
