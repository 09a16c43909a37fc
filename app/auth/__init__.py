# =============================================================================
# app/auth/__init__.py - Authentication Module
# =============================================================================
# Verifies Supabase-issued JWTs for user-facing endpoints.
#
# Usage:
#   from app.auth import get_current_user, AuthUser
#
#   @router.get("/protected")
#   async def protected(user: AuthUser = Depends(get_current_user)):
#       return {"user_id": user.id}
# =============================================================================

from app.auth.dependencies import SupabaseTokenVerifier, get_current_user
from app.auth.models import AuthUser

__all__ = [
    "get_current_user",
    "SupabaseTokenVerifier",
    "AuthUser",
]
