"""
API v1 package.

Contains versioned API routes for the account identity service.
"""

from account_identity.api.v1.routes import router

__all__ = ["router"]
