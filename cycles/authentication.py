"""
Token authentication for the cycle API.

Kept in its own module so ``REST_FRAMEWORK`` settings can reference a
stable import path without pulling in any views.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """DRF token authentication using the ``Token`` keyword."""

    keyword = 'Token'
