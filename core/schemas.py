# core/schemas.py
"""
Request payload schemas validated at the HTTP boundary
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from core.database_models import (
    ApplicationStatus, CalculationMethod, EducationLevel, GoalStatus, GoalType,
    Priority, ResidencyStatus, SchoolType, UserRole
)
from core.errors import ValidationFailed


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


Money = Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2)]
TargetAmount = Annotated[Decimal, Field(gt=0, le=1000000, max_digits=12, decimal_places=2)]
Timestamp = Annotated[datetime, AfterValidator(_naive_utc)]


class APIModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='ignore',
        str_strip_whitespace=True,
    )


def json_object(payload) -> Dict[str, Any]:
    """
    Request body as a dict; a missing body is empty

    Raises:
        ValidationFailed: when the body is JSON but not an object
    """
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationFailed('Validation failed', [
            {'field': '__root__', 'message': 'Request body must be a JSON object'}
        ])
    return payload


def parse(schema, payload):
    """
    Validate a request body against a schema

    Raises:
        ValidationFailed: with one ``{field, message}`` entry per problem
    """
    payload = json_object(payload)
    try:
        return schema.model_validate(payload)
    except ValidationError as e:
        errors = [
            {
                'field': '.'.join(str(part) for part in err['loc']) or '__root__',
                'message': err['msg'],
            }
            for err in e.errors()
        ]
        raise ValidationFailed('Validation failed', errors)


# Auth

class RegisterRequest(APIModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=128)
    name: Optional[str] = Field(default=None, max_length=100)
    role: UserRole = UserRole.STUDENT
    phone: Optional[str] = Field(default=None, max_length=20)
    education_level: Optional[str] = None
    institution: Optional[str] = Field(default=None, max_length=200)
    educational_description: Optional[str] = Field(default=None, max_length=2000)
    graduation_year: Optional[int] = Field(default=None, ge=2020, le=2040)
    major: Optional[str] = Field(default=None, max_length=100)

    @field_validator('role', mode='before')
    @classmethod
    def _lower_role(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
        if value == UserRole.ADMIN.value:
            raise ValueError('Administrator accounts cannot be self-registered')
        return value


class LoginRequest(APIModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class ForgotPasswordRequest(APIModel):
    email: str = Field(min_length=3, max_length=255)


class ResetPasswordRequest(APIModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=1, max_length=128)
    confirm_password: str = Field(min_length=1, max_length=128)


# Scholarships and applications

class ScholarshipCreate(APIModel):
    title: str = Field(min_length=1, max_length=200)
    amount: Money
    deadline: Timestamp
    description: Optional[str] = None
    provider: Optional[str] = Field(default=None, max_length=150)
    eligibility_requirements: Optional[str] = None
    education_level: EducationLevel = EducationLevel.UNDERGRADUATE
    notes: Optional[str] = None


class ApplicationUpdate(APIModel):
    status: Optional[ApplicationStatus] = None
    notes: Optional[str] = None
    award_amount: Optional[Money] = None
    decision_date: Optional[Timestamp] = None


# Financial goals

class ExpenseIn(APIModel):
    name: str = Field(min_length=1, max_length=200)
    amount: Money
    is_estimated: bool = True
    frequency: str = Field(default='one_time', max_length=20)


class FundingSourceIn(APIModel):
    source_name: str = Field(min_length=1, max_length=200)
    source_type: str = Field(min_length=1, max_length=50)
    amount: Money
    probability_percentage: int = Field(default=50, ge=0, le=100)
    deadline: Optional[Timestamp] = None
    renewable: bool = False
    application_status: str = Field(default='not_applied', max_length=30)
    confirmed_amount: Money = Decimal('0')


class GoalFields(APIModel):
    description: Optional[str] = None
    current_amount: Optional[Money] = None
    deadline: Optional[Timestamp] = None
    created_via_template: Optional[str] = Field(default=None, max_length=50)
    target_state: Optional[str] = Field(default=None, max_length=100)
    target_country: Optional[str] = Field(default=None, max_length=100)
    residency_status: Optional[ResidencyStatus] = None
    education_level: Optional[str] = Field(default=None, max_length=50)
    school_type: Optional[SchoolType] = None
    program_type: Optional[str] = Field(default=None, max_length=50)
    credit_hours_per_term: Optional[int] = Field(default=None, ge=1, le=30)
    terms_per_year: Optional[int] = Field(default=None, ge=1, le=4)
    program_duration_years: Optional[Decimal] = Field(default=None, gt=0, le=10, max_digits=3, decimal_places=1)
    estimated_efc: Optional[int] = Field(default=None, ge=0, le=99999, alias='estimatedEFC')
    pell_eligible: Optional[bool] = None
    state_aid_eligible: Optional[bool] = None
    family_income_range: Optional[str] = Field(default=None, max_length=50)
    planned_start_date: Optional[date] = None
    planned_end_date: Optional[date] = None
    academic_year: Optional[str] = Field(default=None, max_length=20)


class GoalCreate(GoalFields):
    title: str = Field(min_length=1, max_length=200)
    target_amount: TargetAmount
    goal_type: GoalType = GoalType.EDUCATION
    priority: Priority = Priority.MEDIUM
    status: GoalStatus = GoalStatus.ACTIVE
    calculation_method: CalculationMethod = CalculationMethod.MANUAL_ENTRY
    expenses: List[ExpenseIn] = Field(default_factory=list)
    funding_sources: List[FundingSourceIn] = Field(default_factory=list)


class GoalUpdate(GoalFields):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    target_amount: Optional[TargetAmount] = None
    goal_type: Optional[GoalType] = None
    priority: Optional[Priority] = None
    status: Optional[GoalStatus] = None
    calculation_method: Optional[CalculationMethod] = None
    expenses: Optional[List[ExpenseIn]] = None
    funding_sources: Optional[List[FundingSourceIn]] = None


# Settings

class ProfileUpdate(APIModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)
    gpa: Optional[Decimal] = Field(default=None, ge=0, le=4, max_digits=3, decimal_places=2)
    graduation_year: Optional[int] = Field(default=None, ge=2020)
    school: Optional[str] = Field(default=None, max_length=200)
    major: Optional[str] = Field(default=None, max_length=100)


class PreferencesUpdate(APIModel):
    preferences: Dict[str, Any]


class PasswordChange(APIModel):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=1, max_length=128)
    confirm_password: str = Field(min_length=1, max_length=128)


class EmailChange(APIModel):
    new_email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class AccountDelete(APIModel):
    password: str = Field(min_length=1, max_length=128)


# Connections

class InviteRequest(APIModel):
    email: str = Field(min_length=3, max_length=255)


class AcceptInviteRequest(APIModel):
    token: str = Field(min_length=1)


class GoalTotalsRequest(APIModel):
    expenses: List[ExpenseIn] = Field(default_factory=list)
    funding_sources: List[FundingSourceIn] = Field(default_factory=list)
