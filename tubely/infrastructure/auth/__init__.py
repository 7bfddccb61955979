"""
Bearer JWT verification (PyJWT).
"""

from .tokens import AuthError, JWTAuthenticator, make_jwt, validate_jwt

__all__ = ["AuthError", "JWTAuthenticator", "make_jwt", "validate_jwt"]
