"""
Authentication layer for Reembolso: session state machine and FastAPI
dependencies.
"""

from .context import AuthContext, AuthResult, AuthState

__all__ = ["AuthContext", "AuthResult", "AuthState"]
