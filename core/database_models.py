from datetime import datetime, timezone
import enum

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import (
    Column, Integer, String, DateTime, Date, JSON, Text, Boolean, Numeric,
    ForeignKey, Enum as SAEnum
)
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()
db = SQLAlchemy(model_class=Base)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the DateTime columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum_column(enum_cls, name):
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class UserRole(str, enum.Enum):
    STUDENT = 'student'
    PARENT = 'parent'
    COUNSELOR = 'counselor'
    ADMIN = 'admin'


class EducationLevel(str, enum.Enum):
    HIGH_SCHOOL = 'high_school'
    UNDERGRADUATE = 'undergraduate'
    GRADUATE = 'graduate'
    DOCTORAL = 'doctoral'
    POST_DOCTORAL = 'post_doctoral'


class ScholarshipStatus(str, enum.Enum):
    ACTIVE = 'active'
    EXPIRED = 'expired'
    UPCOMING = 'upcoming'
    CLOSED = 'closed'


class ApplicationStatus(str, enum.Enum):
    DRAFT = 'draft'
    SUBMITTED = 'submitted'
    UNDER_REVIEW = 'under_review'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'
    WAITLISTED = 'waitlisted'


class GoalType(str, enum.Enum):
    EDUCATION = 'education'
    LIVING = 'living'
    EMERGENCY = 'emergency'
    CAREER = 'career'
    RESEARCH = 'research'
    TRAVEL = 'travel'


class Priority(str, enum.Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    CRITICAL = 'critical'


class GoalStatus(str, enum.Enum):
    ACTIVE = 'active'
    COMPLETED = 'completed'
    PAUSED = 'paused'
    CANCELLED = 'cancelled'
    UNDER_REVIEW = 'under_review'


class CalculationMethod(str, enum.Enum):
    TEMPLATE_BASED = 'template_based'
    MANUAL_ENTRY = 'manual_entry'
    AI_ASSISTED = 'ai_assisted'
    IMPORTED = 'imported'


class ResidencyStatus(str, enum.Enum):
    IN_STATE = 'in_state'
    OUT_OF_STATE = 'out_of_state'
    INTERNATIONAL = 'international'
    ESTABLISHING_RESIDENCY = 'establishing_residency'


class SchoolType(str, enum.Enum):
    PUBLIC = 'public'
    PRIVATE = 'private'
    COMMUNITY_COLLEGE = 'community_college'
    TRADE_SCHOOL = 'trade_school'
    ONLINE = 'online'
    HYBRID = 'hybrid'


class NotificationType(str, enum.Enum):
    DEADLINE_REMINDER = 'deadline_reminder'
    STATUS_UPDATE = 'status_update'
    NEW_SCHOLARSHIP = 'new_scholarship'
    SYSTEM_ALERT = 'system_alert'


class ConnectionType(str, enum.Enum):
    PARENT = 'parent'
    COUNSELOR = 'counselor'


class ActivityType(str, enum.Enum):
    SIGN_UP = 'SIGN_UP'
    SIGN_IN = 'SIGN_IN'
    SIGN_OUT = 'SIGN_OUT'
    UPDATE_PASSWORD = 'UPDATE_PASSWORD'
    RESET_PASSWORD = 'RESET_PASSWORD'
    UPDATE_ACCOUNT = 'UPDATE_ACCOUNT'
    DELETE_ACCOUNT = 'DELETE_ACCOUNT'
    SCHOLARSHIP_CREATED = 'SCHOLARSHIP_CREATED'
    APPLICATION_CREATED = 'APPLICATION_CREATED'
    APPLICATION_STATUS_CHANGED = 'APPLICATION_STATUS_CHANGED'
    CONNECTION_CREATED = 'CONNECTION_CREATED'


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    name = Column(String(100))
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(Text, nullable=False)
    role = Column(_enum_column(UserRole, 'user_role'), nullable=False, default=UserRole.STUDENT)
    phone = Column(String(20))
    education_level = Column(_enum_column(EducationLevel, 'education_level'))
    educational_status = Column(String(50))
    educational_description = Column(Text)
    gpa = Column(Numeric(3, 2))
    graduation_year = Column(Integer)
    school = Column(String(200))
    major = Column(String(100))
    is_active = Column(Boolean, default=True)
    email_verified = Column(Boolean, default=False)
    preferences = Column(JSON)
    reset_token = Column(String(128), index=True)
    reset_token_expiry = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime)

    # Relationships
    scholarships = relationship("Scholarship", back_populates="creator")
    applications = relationship("Application", back_populates="user")
    financial_goals = relationship("FinancialGoal", back_populates="user")
    notifications = relationship("Notification", back_populates="user")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': _value(self.role),
            'phone': self.phone,
            'educationLevel': _value(self.education_level),
            'educationalStatus': self.educational_status,
            'educationalDescription': self.educational_description,
            'gpa': _number(self.gpa),
            'graduationYear': self.graduation_year,
            'school': self.school,
            'major': self.major,
            'emailVerified': bool(self.email_verified),
            'createdAt': _iso(self.created_at),
        }


class Scholarship(Base):
    __tablename__ = 'scholarships'

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), default='USD')
    provider = Column(String(150), nullable=False)
    provider_website = Column(Text)
    eligibility_requirements = Column(Text, nullable=False)
    application_deadline = Column(DateTime, nullable=False)
    education_level = Column(_enum_column(EducationLevel, 'education_level'), nullable=False)
    status = Column(_enum_column(ScholarshipStatus, 'scholarship_status'), nullable=False,
                    default=ScholarshipStatus.ACTIVE)
    is_renewable = Column(Boolean, default=False)
    created_by = Column(Integer, ForeignKey('users.id'), index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    creator = relationship("User", back_populates="scholarships")
    applications = relationship("Application", back_populates="scholarship")

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'amount': _number(self.amount),
            'currency': self.currency,
            'provider': self.provider,
            'eligibilityRequirements': self.eligibility_requirements,
            'applicationDeadline': _iso(self.application_deadline),
            'status': _value(self.status),
            'createdAt': _iso(self.created_at),
        }


class Application(Base):
    __tablename__ = 'applications'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    scholarship_id = Column(Integer, ForeignKey('scholarships.id'), nullable=False, index=True)
    status = Column(_enum_column(ApplicationStatus, 'application_status'), nullable=False,
                    default=ApplicationStatus.DRAFT)
    submitted_at = Column(DateTime)
    status_updated_at = Column(DateTime)
    decision_date = Column(DateTime)
    award_amount = Column(Numeric(12, 2))
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    user = relationship("User", back_populates="applications")
    scholarship = relationship("Scholarship", back_populates="applications")

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'scholarshipId': self.scholarship_id,
            'status': _value(self.status),
            'submittedAt': _iso(self.submitted_at),
            'statusUpdatedAt': _iso(self.status_updated_at),
            'decisionDate': _iso(self.decision_date),
            'awardAmount': _number(self.award_amount),
            'notes': self.notes,
        }


class FinancialGoal(Base):
    __tablename__ = 'financial_goals'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    description = Column(Text)
    goal_type = Column(_enum_column(GoalType, 'goal_type'), nullable=False, default=GoalType.EDUCATION)
    target_amount = Column(Numeric(12, 2), nullable=False)
    current_amount = Column(Numeric(12, 2), default=0)
    deadline = Column(DateTime)
    priority = Column(_enum_column(Priority, 'priority'), default=Priority.MEDIUM)
    status = Column(_enum_column(GoalStatus, 'goal_status'), default=GoalStatus.ACTIVE, index=True)

    created_via_template = Column(String(50))
    calculation_method = Column(_enum_column(CalculationMethod, 'calculation_method'),
                                default=CalculationMethod.MANUAL_ENTRY)

    # Geographic context
    target_state = Column(String(100))
    target_country = Column(String(100), default='United States')
    residency_status = Column(_enum_column(ResidencyStatus, 'residency_status'))

    # Academic context
    education_level = Column(String(50))
    school_type = Column(_enum_column(SchoolType, 'school_type'))
    program_type = Column(String(50))
    credit_hours_per_term = Column(Integer)
    terms_per_year = Column(Integer, default=2)
    program_duration_years = Column(Numeric(3, 1))

    # Financial aid context
    estimated_efc = Column(Integer)
    pell_eligible = Column(Boolean, default=False)
    state_aid_eligible = Column(Boolean, default=False)
    family_income_range = Column(String(50))

    # Timeline
    planned_start_date = Column(Date)
    planned_end_date = Column(Date)
    academic_year = Column(String(20))

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    user = relationship("User", back_populates="financial_goals")
    expenses = relationship("GoalExpense", back_populates="goal", cascade="all, delete-orphan",
                            order_by="GoalExpense.id")
    funding_sources = relationship("GoalFundingSource", back_populates="goal",
                                   cascade="all, delete-orphan", order_by="GoalFundingSource.id")

    def to_dict(self, include_expenses=False, include_funding=False):
        data = {
            'id': self.id,
            'userId': self.user_id,
            'title': self.title,
            'description': self.description,
            'goalType': _value(self.goal_type),
            'targetAmount': _number(self.target_amount),
            'currentAmount': _number(self.current_amount),
            'deadline': _iso(self.deadline),
            'priority': _value(self.priority),
            'status': _value(self.status),
            'createdViaTemplate': self.created_via_template,
            'calculationMethod': _value(self.calculation_method),
            'targetState': self.target_state,
            'targetCountry': self.target_country,
            'residencyStatus': _value(self.residency_status),
            'educationLevel': self.education_level,
            'schoolType': _value(self.school_type),
            'programType': self.program_type,
            'creditHoursPerTerm': self.credit_hours_per_term,
            'termsPerYear': self.terms_per_year,
            'programDurationYears': _number(self.program_duration_years),
            'estimatedEFC': self.estimated_efc,
            'pellEligible': bool(self.pell_eligible),
            'stateAidEligible': bool(self.state_aid_eligible),
            'familyIncomeRange': self.family_income_range,
            'plannedStartDate': _iso(self.planned_start_date),
            'plannedEndDate': _iso(self.planned_end_date),
            'academicYear': self.academic_year,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }
        if include_expenses:
            data['expenses'] = [e.to_dict() for e in self.expenses]
        if include_funding:
            data['fundingSources'] = [s.to_dict() for s in self.funding_sources]
        return data


class GoalExpense(Base):
    __tablename__ = 'goal_expenses'

    id = Column(Integer, primary_key=True)
    goal_id = Column(Integer, ForeignKey('financial_goals.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    is_estimated = Column(Boolean, default=True)
    frequency = Column(String(20), default='one_time')
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    goal = relationship("FinancialGoal", back_populates="expenses")

    def to_dict(self):
        return {
            'id': self.id,
            'goalId': self.goal_id,
            'name': self.name,
            'amount': _number(self.amount),
            'isEstimated': bool(self.is_estimated),
            'frequency': self.frequency,
        }


class GoalFundingSource(Base):
    __tablename__ = 'goal_funding_sources'

    id = Column(Integer, primary_key=True)
    goal_id = Column(Integer, ForeignKey('financial_goals.id'), nullable=False, index=True)
    source_name = Column(String(200), nullable=False)
    source_type = Column(String(50), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    probability_percentage = Column(Integer, default=50)
    deadline = Column(DateTime)
    renewable = Column(Boolean, default=False)
    application_status = Column(String(30), default='not_applied')
    confirmed_amount = Column(Numeric(12, 2), default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    goal = relationship("FinancialGoal", back_populates="funding_sources")

    def to_dict(self):
        return {
            'id': self.id,
            'goalId': self.goal_id,
            'sourceName': self.source_name,
            'sourceType': self.source_type,
            'amount': _number(self.amount),
            'probabilityPercentage': self.probability_percentage,
            'deadline': _iso(self.deadline),
            'renewable': bool(self.renewable),
            'applicationStatus': self.application_status,
            'confirmedAmount': _number(self.confirmed_amount),
        }


class UserConnection(Base):
    __tablename__ = 'user_connections'

    id = Column(Integer, primary_key=True)
    parent_user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    child_user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    connection_type = Column(_enum_column(ConnectionType, 'connection_type'), nullable=False)
    is_active = Column(Boolean, default=True)
    permissions = Column(JSON)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    parent_user = relationship("User", foreign_keys=[parent_user_id])
    child_user = relationship("User", foreign_keys=[child_user_id])

    def to_dict(self):
        return {
            'id': self.id,
            'parentUserId': self.parent_user_id,
            'childUserId': self.child_user_id,
            'connectionType': _value(self.connection_type),
            'isActive': bool(self.is_active),
            'permissions': self.permissions or {},
            'createdAt': _iso(self.created_at),
        }


class Notification(Base):
    __tablename__ = 'notifications'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    type = Column(_enum_column(NotificationType, 'notification_type'), nullable=False)
    title = Column(String(150), nullable=False)
    message = Column(Text, nullable=False)
    action_url = Column(Text)
    is_read = Column(Boolean, default=False)
    read_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="notifications")

    def to_dict(self):
        return {
            'id': self.id,
            'type': _value(self.type),
            'title': self.title,
            'message': self.message,
            'actionUrl': self.action_url,
            'isRead': bool(self.is_read),
            'readAt': _iso(self.read_at),
            'createdAt': _iso(self.created_at),
        }


class ActivityLog(Base):
    __tablename__ = 'activity_logs'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    action = Column(String(50), nullable=False)
    entity_type = Column(String(50))
    entity_id = Column(Integer)
    ip_address = Column(String(45))
    user_agent = Column(Text)
    details = Column('metadata', JSON)
    timestamp = Column(DateTime, nullable=False, default=utcnow)


def _value(member):
    return member.value if isinstance(member, enum.Enum) else member


def _number(value):
    return float(value) if value is not None else None


def _iso(value):
    return value.isoformat() if value is not None else None
