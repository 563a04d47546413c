from dataclasses import dataclass
from typing import Optional

from django.db.models import Q

from .models import FeatureAccess


SUPER_ADMIN = 'superAdmin'
ADMIN = 'admin'
INSTRUCTOR = 'instructor'
TA = 'ta'

# Group names mapped to roles, strongest first
ROLE_GROUPS = (
    ('SuperAdmin', SUPER_ADMIN),
    ('Admin', ADMIN),
    ('Instructor', INSTRUCTOR),
    ('TA', TA),
)

# Entities that hang off a school system directly: entity -> path to school_system
SYSTEM_SCOPED = {
    'school_system': 'id',
    'school': 'school_system',
    'course': 'school_system',
    'semester': 'school_system',
    'holiday': 'semester__school_system',
    'student': 'school_system',
}

# Entities that hang off a class: entity -> prefix up to the class
CLASS_SCOPED = {
    'class': '',
    'class_session': 'klass__',
    'enrollment': 'klass__',
    'attendance_record': 'enrollment__klass__',
}

_STAFF = {SUPER_ADMIN, ADMIN}
_TEACHING = {SUPER_ADMIN, ADMIN, INSTRUCTOR}
_EVERYONE = {SUPER_ADMIN, ADMIN, INSTRUCTOR, TA}

# (entity, operation) -> roles allowed; 'view' is open to any role
OPERATIONS = {
    ('school_system', 'add'): {SUPER_ADMIN},
    ('school_system', 'change'): {SUPER_ADMIN},
    ('school_system', 'delete'): {SUPER_ADMIN},
    ('school', 'add'): _STAFF,
    ('school', 'change'): _STAFF,
    ('school', 'delete'): {SUPER_ADMIN},
    ('course', 'add'): _STAFF,
    ('course', 'change'): _STAFF,
    ('course', 'delete'): {SUPER_ADMIN},
    ('semester', 'add'): _STAFF,
    ('semester', 'change'): _STAFF,
    ('semester', 'delete'): _STAFF,
    ('holiday', 'add'): _STAFF,
    ('holiday', 'change'): _STAFF,
    ('holiday', 'delete'): _STAFF,
    ('student', 'add'): _TEACHING,
    ('student', 'change'): _TEACHING,
    ('student', 'delete'): _STAFF,
    ('class', 'add'): _STAFF,
    ('class', 'change'): _TEACHING,
    ('class', 'delete'): _STAFF,
    ('class_session', 'add'): _STAFF,
    ('class_session', 'change'): _EVERYONE,
    ('class_session', 'delete'): _STAFF,
    ('enrollment', 'add'): _TEACHING,
    ('enrollment', 'change'): _TEACHING,
    ('enrollment', 'delete'): _TEACHING,
    ('attendance_record', 'add'): _EVERYONE,
    ('attendance_record', 'change'): _EVERYONE,
    ('attendance_record', 'delete'): _TEACHING,
}

# Feature keys used to gate views and nav
FEATURES = {
    'dashboard',
    'scan_attendance',
    'attendance_sheet',
    'export_attendance',
    'import_holidays',
    'manage_sessions',
}

ROLE_FEATURES = {
    SUPER_ADMIN: FEATURES,
    ADMIN: FEATURES,
    INSTRUCTOR: {'dashboard', 'scan_attendance', 'attendance_sheet', 'export_attendance'},
    TA: {'dashboard', 'scan_attendance', 'attendance_sheet'},
}


@dataclass(frozen=True)
class Scope:
    user_id: Optional[int]
    school_system_id: Optional[int]


def _in_group(user, name: str) -> bool:
    try:
        return user.groups.filter(name=name).exists()
    except Exception:
        return False


def role_for(user) -> Optional[str]:
    if not getattr(user, 'is_authenticated', False):
        return None
    if getattr(user, 'is_superuser', False):
        return SUPER_ADMIN
    for group, role in ROLE_GROUPS:
        if _in_group(user, group):
            return role
    return None


def scope_for(user) -> Scope:
    profile = getattr(user, 'staff_profile', None) if getattr(user, 'is_authenticated', False) else None
    return Scope(
        user_id=getattr(user, 'pk', None),
        school_system_id=profile.school_system_id if profile else None,
    )


def row_filter(role: Optional[str], scope: Scope, entity: str) -> Q:
    """Return the filter limiting ``entity`` rows to what ``role`` may see.

    Super admins see everything. Admins see their school system. Instructors
    and TAs see the classes they teach (and everything hanging off them) plus
    the system-wide reference data of their school system. An unknown role
    sees nothing.
    """
    if entity not in SYSTEM_SCOPED and entity not in CLASS_SCOPED:
        raise ValueError(f"Unknown entity {entity!r}")
    nothing = Q(pk__in=[])
    if role == SUPER_ADMIN:
        return Q()
    if role not in (ADMIN, INSTRUCTOR, TA):
        return nothing

    if entity in SYSTEM_SCOPED:
        if scope.school_system_id is None:
            return nothing
        path = SYSTEM_SCOPED[entity]
        key = path if path == 'id' else f'{path}_id'
        return Q(**{key: scope.school_system_id})

    prefix = CLASS_SCOPED[entity]
    if role == ADMIN:
        if scope.school_system_id is None:
            return nothing
        return Q(**{f'{prefix}school__school_system_id': scope.school_system_id})
    as_ta = Q(**{f'{prefix}teaching_assistants': scope.user_id})
    if role == INSTRUCTOR:
        return Q(**{f'{prefix}instructor_id': scope.user_id}) | as_ta
    return as_ta


def can(role: Optional[str], operation: str, entity: str) -> bool:
    if role is None:
        return False
    if operation == 'view':
        return role in _EVERYONE
    return role in OPERATIONS.get((entity, operation), set())


def scoped(queryset, user, entity: str):
    """Apply the row filter for ``user`` to ``queryset``."""
    condition = row_filter(role_for(user), scope_for(user), entity)
    qs = queryset.filter(condition)
    if entity in CLASS_SCOPED and role_for(user) in (INSTRUCTOR, TA):
        # Joining through the TA table can repeat rows
        qs = qs.distinct()
    return qs


def has_feature(user, feature: str) -> bool:
    if not getattr(user, 'is_authenticated', False):
        return False
    if getattr(user, 'is_superuser', False):
        return True
    # Per-user override takes precedence
    fa = FeatureAccess.objects.filter(user=user, feature=feature).first()
    if fa is not None:
        return bool(fa.allow)
    role = role_for(user)
    if role is None:
        return False
    return feature in ROLE_FEATURES[role]


def caps_for(user):
    return {key: has_feature(user, key) for key in FEATURES}
