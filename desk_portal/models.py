from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import CITEXT, INET
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Postgres types in production, portable fallbacks for the SQLite test database.
IdType = BigInteger().with_variant(Integer(), 'sqlite')
EmailType = Text().with_variant(CITEXT(), 'postgresql')
IpType = Text().with_variant(INET(), 'postgresql')
Money = Numeric(14, 2)


class Base(DeclarativeBase):
    pass


def _enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class PrincipalRole(str, Enum):
    ADMIN = 'admin'
    RESPONSIBLE = 'responsible'
    DESK = 'desk'


class RecordType(str, Enum):
    DESK = 'desk'
    BAYI_DOLUM = 'bayi-dolum'


class SubmissionStatus(str, Enum):
    SUBMITTED = 'submitted'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    PENDING_REVISION = 'pending_revision'
    REVISED = 'revised'


class ReviewAction(str, Enum):
    APPROVE = 'approve'
    REJECT = 'reject'
    REVISE = 'revise'


class Principal(Base):
    __tablename__ = 'principals'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    email: Mapped[str] = mapped_column(EmailType, nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[PrincipalRole] = mapped_column(
        SQLEnum(PrincipalRole, name='principal_role', values_callable=_enum_values), nullable=False
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuthEvent(Base):
    __tablename__ = 'auth_events'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    attempted_email: Mapped[str] = mapped_column(EmailType, nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    failure_reason: Mapped[str | None] = mapped_column(Text)
    principal_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('principals.id'))
    ip: Mapped[str | None] = mapped_column(IpType)
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class WebSession(Base):
    __tablename__ = 'web_sessions'
    __table_args__ = (
        UniqueConstraint('session_token', name='web_sessions_session_token_key'),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    session_token: Mapped[str] = mapped_column(String(128), nullable=False)
    principal_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('principals.id'), nullable=False)
    ip: Mapped[str | None] = mapped_column(IpType)
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class Submission(Base):
    __tablename__ = 'submissions'
    __table_args__ = (
        CheckConstraint('starting_float >= 0', name='submissions_starting_float_ck'),
        CheckConstraint('bank_deposit_manual >= 0', name='submissions_bank_deposit_manual_ck'),
        CheckConstraint('carried_to_next_day >= 0', name='submissions_carried_to_next_day_ck'),
        CheckConstraint('revision_count >= 0', name='submissions_revision_count_ck'),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    record_type: Mapped[RecordType] = mapped_column(
        SQLEnum(RecordType, name='record_type', values_callable=_enum_values), nullable=False
    )
    business_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[SubmissionStatus] = mapped_column(
        SQLEnum(SubmissionStatus, name='submission_status', values_callable=_enum_values),
        nullable=False,
        default=SubmissionStatus.SUBMITTED,
        server_default='submitted',
    )

    starting_float: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'), server_default='0')
    bank_deposit_manual: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'), server_default='0')
    carried_to_next_day: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'), server_default='0')

    total_sales: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'), server_default='0')
    total_credit_card: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'), server_default='0')
    total_cash: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'), server_default='0')
    cash_in_register: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'), server_default='0')
    difference: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'), server_default='0')
    bank_sent_total: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'), server_default='0')

    submitted_by_principal_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('principals.id'), nullable=False)
    submitted_by_email: Mapped[str] = mapped_column(EmailType, nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    reviewed_by_principal_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('principals.id'))
    reviewed_by_email: Mapped[str | None] = mapped_column(EmailType)
    reviewed_by_role: Mapped[str | None] = mapped_column(String(32))
    review_action: Mapped[str | None] = mapped_column(String(32))
    review_notes: Mapped[str | None] = mapped_column(Text)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    revision_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class SubmissionProductLine(Base):
    __tablename__ = 'submission_product_lines'
    __table_args__ = (
        CheckConstraint('quantity >= 0', name='submission_product_lines_non_negative_ck'),
    )

    submission_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey('submissions.id', ondelete='CASCADE'), primary_key=True
    )
    product_code: Mapped[str] = mapped_column(String(64), primary_key=True)
    category_code: Mapped[str] = mapped_column(String(64), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    line_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)


class SubmissionCategoryLine(Base):
    __tablename__ = 'submission_category_lines'
    __table_args__ = (
        CheckConstraint('credit_card_amount >= 0', name='submission_category_lines_credit_ck'),
        CheckConstraint('cash_amount >= 0', name='submission_category_lines_cash_ck'),
        CheckConstraint('bank_sent_amount >= 0', name='submission_category_lines_bank_sent_ck'),
    )

    submission_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey('submissions.id', ondelete='CASCADE'), primary_key=True
    )
    category_code: Mapped[str] = mapped_column(String(64), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    gross_total: Mapped[Decimal] = mapped_column(Money, nullable=False)
    credit_card_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    cash_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    bank_sent_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'), server_default='0')


class SubmissionDenominationLine(Base):
    __tablename__ = 'submission_denomination_lines'
    __table_args__ = (
        CheckConstraint('quantity >= 0', name='submission_denomination_lines_non_negative_ck'),
    )

    submission_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey('submissions.id', ondelete='CASCADE'), primary_key=True
    )
    category_code: Mapped[str] = mapped_column(String(64), primary_key=True)
    denomination_code: Mapped[str] = mapped_column(String(64), primary_key=True)
    denomination_label: Mapped[str] = mapped_column(Text, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    line_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'), server_default='0')


class SubmissionReviewEvent(Base):
    __tablename__ = 'submission_review_events'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    submission_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey('submissions.id', ondelete='CASCADE'), nullable=False
    )
    actor_principal_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('principals.id'), nullable=False)
    actor_email: Mapped[str] = mapped_column(EmailType, nullable=False)
    actor_role: Mapped[str] = mapped_column(String(32), nullable=False)
    event: Mapped[str] = mapped_column(String(32), nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(32))
    to_status: Mapped[str] = mapped_column(String(32), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuditLog(Base):
    __tablename__ = 'audit_log'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    actor_principal_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('principals.id'))
    action: Mapped[str] = mapped_column(Text, nullable=False)
    submission_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('submissions.id'))
    ip: Mapped[str | None] = mapped_column(IpType)
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict, server_default='{}')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
