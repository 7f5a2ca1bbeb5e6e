"""Pydantic schemas for request/response validation."""

from datetime import datetime
from typing import Any, Optional, Literal
from pydantic import BaseModel, EmailStr, Field, model_validator

from app.models.organization import OrganizationType
from app.models.scorecard import ScorecardStatus
from app.models.user import UserRole


# ── Auth ──────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class VerifyOtpRequest(BaseModel):
    email: EmailStr
    code: str = Field(min_length=6, max_length=6, pattern=r"^\d{6}$")


class ResetPasswordRequest(BaseModel):
    reset_token: str
    new_password: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


# ── Organizations ─────────────────────────────────────

class OrganizationBase(BaseModel):
    description: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = Field(None, max_length=30)
    website: Optional[str] = None
    business_reg_number: Optional[str] = None
    license_number: Optional[str] = None
    regulatory_authority: Optional[str] = None
    established_year: Optional[int] = Field(None, ge=1800, le=2100)
    annual_revenue: Optional[float] = Field(None, ge=0)
    employee_count: Optional[int] = Field(None, ge=0)
    branding: Optional[dict] = None
    features: Optional[dict] = None
    settings: Optional[dict] = None

    @model_validator(mode="before")
    @classmethod
    def empty_strings_to_none(cls, values: Any) -> Any:
        """Convert empty strings to None so Optional fields don't choke."""
        if isinstance(values, dict):
            return {k: (None if v == "" else v) for k, v in values.items()}
        return values


class OrganizationCreate(OrganizationBase):
    name: str = Field(min_length=1, max_length=200)
    code: str = Field(min_length=2, max_length=50, pattern=r"^[A-Za-z0-9_-]+$")
    type: OrganizationType
    contact_email: EmailStr


class OrganizationUpdate(OrganizationBase):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    type: Optional[OrganizationType] = None
    contact_email: Optional[EmailStr] = None
    status: Optional[Literal["Active", "Inactive", "Suspended"]] = None


class OrganizationResponse(OrganizationBase):
    id: int
    name: str
    code: str
    type: str
    contact_email: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Users ─────────────────────────────────────────────

class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    organization_id: Optional[int]
    default_module: str = "Dashboard"
    access_matrix: Optional[dict] = None
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse


class AdminUserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    password: str
    role: UserRole = UserRole.DSA
    organization_id: Optional[int] = None
    default_module: str = "Dashboard"


class AdminUserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    organization_id: Optional[int] = None
    default_module: Optional[str] = None
    access_matrix: Optional[dict[str, bool]] = None


class AdminPasswordReset(BaseModel):
    new_password: str


# ── Scorecards ────────────────────────────────────────

class ScorecardCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    product: str = Field(min_length=1, max_length=100)
    segment: str = "General"
    version: str = "1.0"
    config_json: dict = Field(default_factory=dict)
    status: ScorecardStatus = ScorecardStatus.DRAFT


class ScorecardUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    product: Optional[str] = None
    segment: Optional[str] = None
    version: Optional[str] = None
    config_json: Optional[dict] = None


class ScorecardStatusUpdate(BaseModel):
    status: ScorecardStatus


class ScorecardResponse(BaseModel):
    id: int
    organization_id: int
    name: str
    product: str
    segment: str
    version: str
    status: str
    config_json: dict
    created_by: Optional[int]
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ── Generator ─────────────────────────────────────────

class CustomVariableIn(BaseModel):
    name: str = Field(min_length=1)
    total_score: float = Field(ge=0)
    type: Literal["continuous", "categorical"] = "continuous"
    kind: Optional[Literal["age", "income", "credit_score", "generic"]] = None


class CustomSourceIn(BaseModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    weight: float = Field(0, ge=0, le=100)
    description: str = "Custom data source"
    variables: list[CustomVariableIn] = Field(min_length=1)


class GenerateScorecardRequest(BaseModel):
    institution_name: str = Field(min_length=1, max_length=150)
    products: list[str] = Field(default_factory=list)
    segment: str = "General"
    data_sources: list[str] = Field(default_factory=list)
    weights: dict[str, float] = Field(default_factory=dict)
    custom_sources: list[CustomSourceIn] = Field(default_factory=list)
    risk_appetite: Literal["conservative", "moderate", "aggressive"] = "moderate"
    target_approval_rate: float = Field(70, gt=0, le=100)


class NormalizeWeightsRequest(BaseModel):
    weights: dict[str, float] = Field(default_factory=dict)
    sources: Optional[list[str]] = None


# ── Simulation ────────────────────────────────────────

class ApprovalSimulationRequest(BaseModel):
    scorecard_id: Optional[int] = None
    achieved_approval_rate: Optional[float] = Field(None, ge=0, le=100)
    target_approval_rate: Optional[float] = Field(None, ge=0, le=100)
    sample_size: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def _need_source(self) -> "ApprovalSimulationRequest":
        if self.scorecard_id is None and self.achieved_approval_rate is None:
            raise ValueError("Provide scorecard_id or achieved_approval_rate")
        return self


class BulkSimulationRequest(BaseModel):
    scorecard_id: int
    records: list[dict[str, Any]] = Field(min_length=1)


# ── A/B tests ─────────────────────────────────────────

class ABTestCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    scorecard_a_id: int
    scorecard_b_id: int

    @model_validator(mode="after")
    def _distinct(self) -> "ABTestCreate":
        if self.scorecard_a_id == self.scorecard_b_id:
            raise ValueError("Scorecard A and B must be different")
        return self


class ABTestResponse(BaseModel):
    id: int
    name: str
    organization_id: int
    scorecard_a_id: int
    scorecard_b_id: int
    status: str
    result_metrics: Optional[dict] = None
    winner_id: Optional[int] = None
    created_by: Optional[int] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ── API keys & public scoring ─────────────────────────

class ApiKeyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class ApiKeyResponse(BaseModel):
    id: int
    name: str
    key_prefix: str
    is_active: bool
    last_used_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ApiKeyCreated(ApiKeyResponse):
    api_key: str


class ScoreRequest(BaseModel):
    scorecard_id: int
    data: dict[str, Any] = Field(default_factory=dict)


class ScoreResponse(BaseModel):
    scorecard_id: int
    score: int
    bucket: str
    probability: float
    reason_codes: list[str]
