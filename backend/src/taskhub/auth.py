"""
Authentication utilities for extracting user info from Cognito tokens.
The authorizer has already verified the token; these helpers only read its claims.
"""
from typing import Optional, Tuple

from .errors import Forbidden, Unauthorized
from .models import Role


def get_user_sub(event: dict) -> Optional[str]:
    """
    Extract user sub (unique ID) from Cognito authorizer claims.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        User sub string or None if not authenticated
    """
    try:
        return event['requestContext']['authorizer']['claims']['sub']
    except (KeyError, TypeError):
        return None


def get_user_groups(event: dict) -> list:
    """Extract user groups (admin, teacher) from Cognito claims."""
    try:
        groups = event['requestContext']['authorizer']['claims'].get('cognito:groups', '')
        if isinstance(groups, str):
            return groups.split(',') if groups else []
        return groups or []
    except (KeyError, TypeError, AttributeError):
        return []


def get_user_role(event: dict) -> Optional[str]:
    """Map Cognito groups onto an engine role. Admin wins if a user is in both groups."""
    groups = get_user_groups(event)
    if Role.ADMIN in groups:
        return Role.ADMIN
    if Role.TEACHER in groups:
        return Role.TEACHER
    return None


def get_caller(event: dict) -> Tuple[str, str]:
    """
    Return the (identity, role) pair for the request.

    Raises:
        Unauthorized: no verified identity on the request
        Forbidden: the identity carries neither the admin nor the teacher group
    """
    user_id = get_user_sub(event)
    if not user_id:
        raise Unauthorized('Authentication required. Please login.')

    role = get_user_role(event)
    if role is None:
        raise Forbidden('Access denied. Insufficient permissions.')

    return user_id, role


def require_role(caller_role: str, *allowed_roles: str) -> None:
    """Raise Forbidden unless caller_role is one of allowed_roles."""
    if caller_role not in allowed_roles:
        raise Forbidden('Access denied. Insufficient permissions.')
