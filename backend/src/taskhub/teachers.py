"""
Teacher directory: the users a task can be assigned to.
"""
from typing import Any, Dict, List

from .auth import require_role
from .models import Role
from .store import EntityStore


def teacher_view(user: Dict[str, Any]) -> Dict[str, Any]:
    """Public fields of a teacher profile."""
    return {
        'userId': user['userId'],
        'name': user.get('name'),
        'email': user.get('email'),
        'role': user.get('role'),
        'createdAt': user.get('createdAt')
    }


def list_teachers(store: EntityStore, caller_role: str) -> List[Dict[str, Any]]:
    """All users with the teacher role, ordered by name. Admin only."""
    require_role(caller_role, Role.ADMIN)
    teachers = [teacher_view(u) for u in store.list_users(role=Role.TEACHER)]
    teachers.sort(key=lambda t: (t.get('name') or '').lower())
    return teachers
