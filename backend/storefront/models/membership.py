from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class MembershipApplication(db.Model):
    """
    Membership application and, once approved, the member card it issues.

    LIFECYCLE: pending -> approved | rejected.
    Card fields (member_number .. card_generated) are written on the first
    approval only and never change afterwards.
    """
    __tablename__ = "membership_applications"
    __table_args__ = (
        db.UniqueConstraint("member_number", name="uq_membership_member_number"),
        db.Index("ix_membership_status_email", "status", "email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    date_of_birth = db.Column(db.String(32), nullable=False)
    id_number = db.Column(db.String(64), nullable=False)

    address = db.Column(db.Text, nullable=True)
    emergency_contact = db.Column(db.String(200), nullable=True)
    emergency_phone = db.Column(db.String(32), nullable=True)
    medical_conditions = db.Column(db.Text, nullable=True)
    preferred_products = db.Column(db.JSON, nullable=True)

    # Object-store references; uploads happen elsewhere
    id_document_url = db.Column(db.String(512), nullable=True)
    profile_picture_url = db.Column(db.String(512), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reviewed_by = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Member card (populated on approval)
    member_number = db.Column(db.String(32), nullable=True, index=True)
    membership_tier = db.Column(db.String(16), nullable=True)
    member_since = db.Column(db.DateTime(timezone=True), nullable=True)
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)
    qr_code_data = db.Column(db.Text, nullable=True)
    card_generated = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "date_of_birth": self.date_of_birth,
            "id_number": self.id_number,
            "address": self.address,
            "emergency_contact": self.emergency_contact,
            "emergency_phone": self.emergency_phone,
            "medical_conditions": self.medical_conditions,
            "preferred_products": list(self.preferred_products or []),
            "id_document_url": self.id_document_url,
            "profile_picture_url": self.profile_picture_url,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "reviewed_at": to_utc_z(self.reviewed_at),
            "reviewed_by": self.reviewed_by,
            "notes": self.notes,
            "member_number": self.member_number,
            "membership_tier": self.membership_tier,
            "member_since": to_utc_z(self.member_since),
            "expiry_date": to_utc_z(self.expiry_date),
            "qr_code_data": self.qr_code_data,
            "card_generated": self.card_generated,
        }

    def to_card_dict(self) -> dict:
        """Public membership card view; personal details stay admin-only."""
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "status": self.status,
            "member_number": self.member_number,
            "membership_tier": self.membership_tier,
            "member_since": to_utc_z(self.member_since),
            "expiry_date": to_utc_z(self.expiry_date),
            "qr_code_data": self.qr_code_data,
            "card_generated": self.card_generated,
        }


class NumberSequence(db.Model):
    """
    Atomic named counters.

    WHY: Member numbers are allocated with UPDATE ... SET next_number =
    next_number + 1 so two approvals can never read the same value.
    """
    __tablename__ = "number_sequences"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_number_sequences_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
