from .entities import Role

WILDCARD = "*"

READ = "read"
CREATE = "create"
UPDATE = "update"
DELETE = "delete"

# (role) -> resource -> allowed actions. Anything absent is denied.
PERMISSIONS: dict[Role, dict[str, frozenset[str]]] = {
    Role.ADMIN: {
        WILDCARD: frozenset({WILDCARD}),
    },
    Role.TEACHER: {
        "students": frozenset({READ, CREATE, UPDATE}),
        "classes": frozenset({READ, UPDATE}),
        "lessons": frozenset({READ, CREATE, UPDATE, DELETE}),
        "exams": frozenset({READ, CREATE, UPDATE, DELETE}),
        "assignments": frozenset({READ, CREATE, UPDATE, DELETE}),
        "results": frozenset({READ, CREATE, UPDATE}),
        "attendance": frozenset({READ, CREATE, UPDATE}),
        "teachers": frozenset({READ}),
        "subjects": frozenset({READ}),
        "parents": frozenset({READ}),
        "messages": frozenset({READ, CREATE, DELETE}),
        "dashboard": frozenset({READ}),
    },
    Role.STUDENT: {
        "profile": frozenset({READ, UPDATE}),
        "students": frozenset({READ}),
        "classes": frozenset({READ}),
        "subjects": frozenset({READ}),
        "lessons": frozenset({READ}),
        "exams": frozenset({READ}),
        "assignments": frozenset({READ}),
        "results": frozenset({READ}),
        "attendance": frozenset({READ}),
        "messages": frozenset({READ, CREATE, DELETE}),
        "dashboard": frozenset({READ}),
    },
    Role.PARENT: {
        "children": frozenset({READ}),
        "students": frozenset({READ}),
        "teachers": frozenset({READ}),
        "classes": frozenset({READ}),
        "subjects": frozenset({READ}),
        "lessons": frozenset({READ}),
        "exams": frozenset({READ}),
        "assignments": frozenset({READ}),
        "results": frozenset({READ}),
        "attendance": frozenset({READ}),
        "messages": frozenset({READ, CREATE, DELETE}),
        "dashboard": frozenset({READ}),
    },
}


def has_permission(role, resource: str, action: str) -> bool:
    """Pure lookup in PERMISSIONS. Unknown roles, resources and actions are denied."""
    table = PERMISSIONS.get(Role.parse(role))
    if not table:
        return False
    if WILDCARD in table.get(WILDCARD, frozenset()):
        return True
    return action in table.get(resource, frozenset())
