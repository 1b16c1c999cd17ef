"""
Role-based access control for GraphQL operations.
Checks run inside services after the caller has been authenticated.
"""
from typing import Optional
import logging

from models import UserRole
from utils.errors import NotAuthenticated, NotAuthorized

logger = logging.getLogger(__name__)

RESOURCES_FOR_ROLES = {
    UserRole.ADMIN.value: {
        'categories': ['read', 'write', 'delete'],
        'products': ['read'],
        'orders': ['read'],
        'reviews': ['read', 'write', 'delete'],
        'users': ['read', 'write'],
    },
    UserRole.VENDOR.value: {
        'categories': ['read'],
        'products': ['read', 'write', 'delete'],  # Only their own products
        'orders': ['read', 'write'],  # Orders containing their products
        'reviews': ['read', 'write', 'delete'],
        'users': ['read', 'write'],
    },
    UserRole.BUYER.value: {
        'categories': ['read'],
        'products': ['read'],
        'orders': ['read', 'write'],  # Only their own orders
        'reviews': ['read', 'write', 'delete'],
        'users': ['read', 'write'],
    },
}

ACTION_MESSAGES = {
    'write': 'create or update',
    'delete': 'delete',
    'read': 'read',
}


def has_permission(user_role: Optional[str], resource_name: str, required_permission: str) -> bool:
    """Check if user role has permission for the resource and action"""
    if user_role not in RESOURCES_FOR_ROLES:
        return False

    user_permissions = RESOURCES_FOR_ROLES[user_role]

    if resource_name in user_permissions:
        return required_permission in user_permissions[resource_name]

    parent_resource = resource_name.split('/')[0] if '/' in resource_name else resource_name
    if parent_resource in user_permissions:
        return required_permission in user_permissions[parent_resource]

    return False


def require_permission(user, resource: str, permission: str):
    """
    Raise unless ``user`` (a User row, or None for anonymous callers) holds
    ``permission`` on ``resource``.
    """
    if user is None:
        raise NotAuthenticated()

    user_role = getattr(user, 'role', None)
    logger.debug(f"RBAC Check - User: {user_role}, Resource: {resource}, Permission: {permission}")

    if not has_permission(user_role, resource, permission):
        logger.warning(f"Access denied - User: {user.id} ({user_role}), Resource: {resource}, Permission: {permission}")
        raise NotAuthorized(
            f"Only {allowed_roles(resource, permission)} can {ACTION_MESSAGES.get(permission, permission)} {resource}"
        )
    return True


def allowed_roles(resource: str, permission: str) -> str:
    roles = [
        role.lower() + "s"
        for role, resources in RESOURCES_FOR_ROLES.items()
        if permission in resources.get(resource, [])
    ]
    return " and ".join(roles) if roles else "nobody"


def is_admin(user) -> bool:
    return user is not None and user.role == UserRole.ADMIN.value
