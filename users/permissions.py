"""
Users — DRF Permission Classes

Request-level gate for master-data ViewSets. Store-scoped decisions on
stock operations are taken by ``users.policies.StockPolicy`` inside the
services.

@file users/permissions.py
"""

from rest_framework.permissions import SAFE_METHODS, BasePermission

from .policies import StockPolicy


class IsDirectorOrReadOnly(BasePermission):
    """Read for any authenticated user; writes for directors only."""

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if request.method in SAFE_METHODS:
            return True
        return StockPolicy.is_director(user)
