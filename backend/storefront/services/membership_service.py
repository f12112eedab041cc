# Overview: Membership applications, approval, member card issuance and member lookup.

"""
STATE MACHINE:
    pending -> approved | rejected

On the first move into approved the application receives its member card:
member number MS-<approval year>-<sequence>, GOLD tier, member_since, an
expiry 180 days later and the card payload embedded in the member's QR code.
The card is issued once. Approving again (for example after a rejection was
reversed) keeps the original number and payload.

Member numbers come from the "member_number" row in number_sequences, which
is bumped with a single UPDATE so concurrent approvals cannot collide. The
row is seeded from the number of already-approved applications the first
time it is needed.
"""

from __future__ import annotations

import json
from datetime import timedelta

from flask import current_app
from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import MembershipApplication, NumberSequence
from ..time_utils import to_utc_z, utcnow
from ..validation import ModelValidationPolicy, NotFoundError, ValidationError, validate_payload
from .concurrency import lock_for_update, run_with_retry

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
VALID_STATUSES = {STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED}

MEMBERSHIP_TIER = "GOLD"
MEMBERSHIP_TERM = timedelta(days=180)
MEMBER_NUMBER_SEQUENCE = "member_number"

APPLICATION_POLICY = ModelValidationPolicy(
    writable_fields={
        "first_name", "last_name", "email", "phone", "date_of_birth", "id_number",
        "address", "emergency_contact", "emergency_phone", "medical_conditions",
        "preferred_products", "id_document_url", "profile_picture_url",
    },
    required_on_create={"first_name", "last_name", "email", "phone", "date_of_birth", "id_number"},
)


class MembershipStatusError(ValidationError):
    """Status literal is not pending, approved or rejected."""


def validate_status(status) -> str:
    if not isinstance(status, str) or status not in VALID_STATUSES:
        raise MembershipStatusError("Invalid status. Must be pending, approved, or rejected")
    return status


def submit(payload: dict) -> MembershipApplication:
    """
    Create a pending application.

    Raises:
        ValidationError: missing identity fields or unknown fields
    """
    patch = validate_payload(
        model=MembershipApplication, payload=payload, policy=APPLICATION_POLICY, partial=False
    )
    if "@" not in patch["email"]:
        raise ValidationError("email must be a valid email address")
    patch["email"] = patch["email"].lower()

    preferred = patch.get("preferred_products")
    if preferred is not None:
        if not isinstance(preferred, list) or not all(isinstance(p, str) for p in preferred):
            raise ValidationError("preferred_products must be a list of strings")

    now = utcnow()
    application = MembershipApplication(
        **patch,
        status=STATUS_PENDING,
        created_at=now,
        updated_at=now,
    )
    db.session.add(application)
    db.session.commit()
    current_app.logger.info("Membership application %s submitted", application.id)
    return application


def list_applications(status: str | None = None) -> list[MembershipApplication]:
    query = db.session.query(MembershipApplication)
    if status:
        query = query.filter(MembershipApplication.status == validate_status(status))
    return query.order_by(MembershipApplication.created_at.desc(), MembershipApplication.id.desc()).all()


def get_application(application_id: int) -> MembershipApplication:
    application = db.session.get(MembershipApplication, application_id)
    if application is None:
        raise NotFoundError("Membership application not found")
    return application


def _approved_count() -> int:
    return (
        db.session.query(func.count(MembershipApplication.id))
        .filter(MembershipApplication.status == STATUS_APPROVED)
        .scalar()
    ) or 0


def _current_sequence_value() -> int:
    return (
        db.session.query(NumberSequence.next_number)
        .filter_by(name=MEMBER_NUMBER_SEQUENCE)
        .scalar()
    )


def allocate_member_sequence() -> int:
    """
    Atomically take the next member sequence number.

    Runs inside the caller's transaction; the bump commits with the approval.
    """
    stmt = (
        update(NumberSequence)
        .where(NumberSequence.name == MEMBER_NUMBER_SEQUENCE)
        .values(next_number=NumberSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        return _current_sequence_value() - 1

    first = _approved_count() + 1
    seq = NumberSequence(name=MEMBER_NUMBER_SEQUENCE, next_number=first + 1)
    db.session.add(seq)
    try:
        db.session.flush()
        return first
    except IntegrityError:
        # Another approval created the row first
        db.session.rollback()
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        db.session.flush()
        return _current_sequence_value() - 1


def format_member_number(year: int, sequence: int) -> str:
    return f"MS-{year}-{sequence:03d}"


def build_card_payload(member_number: str, issued_at, tier: str = MEMBERSHIP_TIER) -> str:
    return json.dumps({
        "member_number": member_number,
        "issued_at": to_utc_z(issued_at),
        "tier": tier,
    })


def _issue_card(application: MembershipApplication, member_number: str, now) -> None:
    application.member_number = member_number
    application.membership_tier = MEMBERSHIP_TIER
    application.member_since = now
    application.expiry_date = now + MEMBERSHIP_TERM
    application.card_generated = True
    application.qr_code_data = build_card_payload(member_number, now)


def set_status(
    application_id: int,
    status,
    *,
    reviewed_by: str | None = None,
    notes: str | None = None,
    now=None,
) -> MembershipApplication:
    """
    Move an application to pending, approved or rejected.

    Raises:
        MembershipStatusError: unrecognized status (application unchanged)
        NotFoundError: unknown application
    """
    validate_status(status)

    def _op():
        moment = now or utcnow()
        application = get_application(application_id)

        if status == STATUS_APPROVED and not application.member_number:
            sequence = allocate_member_sequence()
            # Reload under lock; allocation may have rolled back and expired it
            application = lock_for_update(
                db.session.query(MembershipApplication).filter_by(id=application_id)
            ).first()
            if application is None:
                raise NotFoundError("Membership application not found")
            _issue_card(application, format_member_number(moment.year, sequence), moment)

        application.status = status
        application.reviewed_at = moment
        application.updated_at = moment
        if reviewed_by is not None:
            application.reviewed_by = str(reviewed_by).strip()[:128] or None
        if notes is not None:
            application.notes = str(notes)

        db.session.commit()
        return application

    try:
        application = run_with_retry(_op)
    except NotFoundError:
        db.session.rollback()
        raise

    if status == STATUS_APPROVED:
        current_app.logger.info(
            "Member approved: application=%s member_number=%s",
            application.id, application.member_number,
        )
    else:
        current_app.logger.info("Membership application %s marked %s", application.id, status)
    return application


def update_application(application_id: int, payload: dict) -> MembershipApplication:
    """Review update: optional status plus notes / reviewer."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    status = payload.get("status")
    notes = payload.get("notes")
    reviewed_by = payload.get("reviewed_by")

    if status:
        return set_status(application_id, status, reviewed_by=reviewed_by, notes=notes)

    application = get_application(application_id)
    if notes is not None:
        application.notes = str(notes)
    if reviewed_by is not None:
        application.reviewed_by = str(reviewed_by).strip()[:128] or None
    application.updated_at = utcnow()
    db.session.commit()
    return application


def delete_application(application_id: int) -> bool:
    """Hard delete. Returns False when there was nothing to delete."""
    deleted = (
        db.session.query(MembershipApplication)
        .filter_by(id=application_id)
        .delete(synchronize_session=False)
    )
    db.session.commit()
    if deleted:
        current_app.logger.info("Membership application %s deleted", application_id)
    return bool(deleted)


def _approved_members():
    return db.session.query(MembershipApplication).filter(
        MembershipApplication.status == STATUS_APPROVED
    )


def lookup_member(query: str) -> MembershipApplication:
    """Find an approved member by exact member number or case-insensitive email."""
    query = (query or "").strip()
    if not query:
        raise ValidationError("Search query is required")
    member = (
        _approved_members()
        .filter(or_(
            MembershipApplication.member_number == query,
            func.lower(MembershipApplication.email) == query.lower(),
        ))
        .order_by(MembershipApplication.id.asc())
        .first()
    )
    if member is None:
        raise NotFoundError("Member not found")
    return member


def verify_member(member_number: str) -> MembershipApplication:
    """Staff check: approved member by exact member number only."""
    member_number = (member_number or "").strip()
    if not member_number:
        raise ValidationError("Member number is required")
    member = _approved_members().filter(MembershipApplication.member_number == member_number).first()
    if member is None:
        raise NotFoundError("Member not found")
    return member
