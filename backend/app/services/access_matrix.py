"""Role-based module access for the dashboard navigation and route guards."""

from app.models.user import UserRole

MODULES = (
    "dashboard",
    "profile",
    "organizations",
    "users",
    "aiGenerator",
    "scorecardConfig",
    "testingEngine",
    "abTesting",
    "apiManagement",
    "bulkProcessing",
    "auditTrail",
    "systemSettings",
    "approvals",
)

_BASE = {"dashboard": True, "profile": True}

_ROLE_MODULES: dict[str, dict[str, bool]] = {
    UserRole.ADMIN.value: {
        "organizations": True,
        "users": True,
        "aiGenerator": True,
        "scorecardConfig": True,
        "testingEngine": True,
        "abTesting": True,
        "apiManagement": True,
        "bulkProcessing": True,
        "auditTrail": True,
        "systemSettings": True,
        "approvals": True,
    },
    UserRole.POWER_USER.value: {
        "users": True,
        "aiGenerator": True,
        "scorecardConfig": True,
        "testingEngine": True,
        "abTesting": True,
        "bulkProcessing": True,
        "auditTrail": False,
    },
    UserRole.APPROVER.value: {
        "scorecardConfig": True,
        "testingEngine": True,
        "abTesting": False,
        "bulkProcessing": False,
        "auditTrail": False,
        "approvals": True,
    },
    UserRole.DSA.value: {
        "bulkProcessing": True,
        "testingEngine": True,
        "scorecardConfig": False,
        "auditTrail": False,
    },
}


def generate_access_matrix(role: str) -> dict[str, bool]:
    """Full module map for ``role``; modules not granted are False."""
    matrix = {module: False for module in MODULES}
    matrix.update(_BASE)
    matrix.update(_ROLE_MODULES.get(role, {}))
    return matrix


def has_module(user, module: str) -> bool:
    """Check a user's stored matrix, falling back to the role default."""
    if user.role == UserRole.ADMIN.value:
        return True
    matrix = user.access_matrix or generate_access_matrix(user.role)
    return bool(matrix.get(module, False))
