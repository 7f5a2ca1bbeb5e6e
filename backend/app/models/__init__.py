"""SQLAlchemy models for the FinIQ scorecard platform."""

from app.models.organization import Organization, OrganizationType, OrganizationStatus
from app.models.user import User, UserRole
from app.models.session import UserSession, LoginAttempt, PasswordResetOTP
from app.models.scorecard import Scorecard, ScorecardStatus, SimulationRecord
from app.models.ab_test import ABTest, ABTestStatus
from app.models.api_key import ApiKey
from app.models.api_log import ApiLog
from app.models.audit import AuditLog
from app.models.error_log import ErrorLog, ErrorSeverity

__all__ = [
    "Organization", "OrganizationType", "OrganizationStatus",
    "User", "UserRole",
    "UserSession", "LoginAttempt", "PasswordResetOTP",
    "Scorecard", "ScorecardStatus", "SimulationRecord",
    "ABTest", "ABTestStatus",
    "ApiKey", "ApiLog", "AuditLog",
    "ErrorLog", "ErrorSeverity",
]
