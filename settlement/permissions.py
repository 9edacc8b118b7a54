"""
Permissions for the settlement API
"""

from rest_framework import permissions


class HasPartnerProfile(permissions.BasePermission):
    """
    Permission class to ensure the user is linked to a partner.
    """

    message = 'No partner profile is linked to this user.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and getattr(user, 'partner', None))


class IsBatchOwner(permissions.BasePermission):
    """
    Permission class to ensure only the retailer of a batch, or staff,
    can read it.
    """

    def has_object_permission(self, request, view, obj):
        if request.user.is_staff:
            return True
        partner = getattr(request.user, 'partner', None)
        return partner is not None and obj.retailer_id == partner.id
