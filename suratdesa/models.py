"""
SuratDesa domain models.

- User: staff account with a role from the closed role set (see security.py).
- Letter: official correspondence with a generated reference number.
- Attachment: file stored in the upload folder, owned by exactly one Letter.
- LetterCounter: per-year sequence used for collision-free numbering.
- VillageProfile: singleton letterhead / village identity record.
- AuditLog: who changed what, with before/after snapshots.

IMPORTANT:
- Letter.status is only changed through letters.transition_letter().
- Attachments are immutable once created.
"""

from __future__ import annotations

from datetime import datetime

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from .extensions import db


# ---------------------------------------------------------------------
# Enumerations (stored as plain strings)
# ---------------------------------------------------------------------
LETTER_TYPES = {
    "UMUM": "Umum",
    "KETERANGAN": "Keterangan",
    "REKOMENDASI": "Rekomendasi",
    "PENGUMUMAN": "Pengumuman",
    "UNDANGAN": "Undangan",
}

LETTER_STATUSES = {
    "draft": "Draf",
    "pending": "Menunggu Persetujuan",
    "approved": "Disetujui",
    "rejected": "Ditolak",
    "sent": "Terkirim",
    "archived": "Diarsipkan",
}

PRIORITIES = {
    "low": "Rendah",
    "medium": "Sedang",
    "high": "Tinggi",
}


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """Application user. Role drives capabilities (security.capabilities_for)."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    display_name = db.Column(db.String(150), nullable=True)
    role = db.Column(db.String(20), nullable=True, default="viewer", index=True)

    department = db.Column(db.String(150), nullable=True)
    position = db.Column(db.String(150), nullable=True)
    phone = db.Column(db.String(50), nullable=True)

    village_code = db.Column(db.String(50), nullable=True)
    village_name = db.Column(db.String(150), nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    letters = db.relationship(
        "Letter",
        back_populates="creator",
        foreign_keys="Letter.created_by",
        lazy=True,
    )

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def label(self) -> str:
        """Name shown in recipient lists and letter metadata."""
        return self.display_name or self.email

    def __repr__(self):
        return f"<User {self.email}>"


# ---------------------------------------------------------------------
# Letters
# ---------------------------------------------------------------------
class Letter(db.Model):
    __tablename__ = "letters"

    id = db.Column(db.Integer, primary_key=True)

    letter_number = db.Column(db.String(100), unique=True, index=True)
    number = db.Column(db.Integer, index=True)
    year = db.Column(db.Integer, index=True)
    month = db.Column(db.String(2))

    type = db.Column(db.String(20), index=True)
    subject = db.Column(db.String(255))
    # Rich text as submitted by the editor
    content = db.Column(db.Text)
    recipients = db.Column(db.JSON)

    status = db.Column(db.String(20), nullable=False, default="draft", index=True)
    priority = db.Column(db.String(10), nullable=True, default="medium")
    notes = db.Column(db.Text, nullable=True)
    signature_url = db.Column(db.String(500), nullable=True)

    created_by = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    approved_by = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    approved_at = db.Column(db.DateTime, nullable=True)
    rejected_at = db.Column(db.DateTime, nullable=True)
    sent_at = db.Column(db.DateTime, nullable=True)
    archived_at = db.Column(db.DateTime, nullable=True)

    creator = db.relationship("User", back_populates="letters", foreign_keys=[created_by])
    approver = db.relationship("User", foreign_keys=[approved_by])

    attachments = db.relationship(
        "Attachment",
        back_populates="letter",
        cascade="all, delete-orphan",
        order_by="Attachment.id",
    )

    __table_args__ = (
        db.UniqueConstraint("year", "number", name="uq_letter_year_number"),
    )

    @property
    def type_label(self) -> str:
        return LETTER_TYPES.get(self.type, self.type or "")

    @property
    def status_label(self) -> str:
        return LETTER_STATUSES.get(self.status, self.status or "")

    @property
    def priority_label(self) -> str:
        return PRIORITIES.get(self.priority, "")

    def history(self) -> list[dict]:
        """Status history derived from the timestamps that are present, oldest first."""
        events = [("Dibuat", self.created_at)]
        if self.approved_at:
            events.append(("Disetujui", self.approved_at))
        if self.rejected_at:
            events.append(("Ditolak", self.rejected_at))
        if self.sent_at:
            events.append(("Dikirim", self.sent_at))
        if self.archived_at:
            events.append(("Diarsipkan", self.archived_at))
        return [
            {"label": label, "at": at}
            for label, at in sorted((e for e in events if e[1]), key=lambda e: e[1])
        ]

    def __repr__(self):
        return f"<Letter {self.letter_number}>"


class Attachment(db.Model):
    __tablename__ = "attachments"

    id = db.Column(db.Integer, primary_key=True)

    letter_id = db.Column(
        db.Integer,
        db.ForeignKey("letters.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = db.Column(db.String(255), nullable=False)
    url = db.Column(db.String(500), nullable=False)
    media_type = db.Column(db.String(120), nullable=True)
    size = db.Column(db.Integer, nullable=False, default=0)

    uploaded_at = db.Column(db.DateTime, default=datetime.utcnow)

    letter = db.relationship("Letter", back_populates="attachments")


class LetterCounter(db.Model):
    """Last issued letter sequence per year (incremented atomically)."""

    __tablename__ = "letter_counters"

    year = db.Column(db.Integer, primary_key=True, autoincrement=False)
    last_number = db.Column(db.Integer, nullable=False, default=0)


# ---------------------------------------------------------------------
# Village profile (singleton)
# ---------------------------------------------------------------------
class VillageProfile(db.Model):
    __tablename__ = "village_profile"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(150), nullable=False)
    code = db.Column(db.String(50), nullable=False)

    address = db.Column(db.String(255))
    district = db.Column(db.String(150))
    regency = db.Column(db.String(150))
    province = db.Column(db.String(150))
    postal_code = db.Column(db.String(20))
    phone = db.Column(db.String(50))
    email = db.Column(db.String(255))
    website = db.Column(db.String(255))

    village_logo = db.Column(db.String(500))
    regency_logo = db.Column(db.String(500))

    head_name = db.Column(db.String(150))
    head_position = db.Column(db.String(150))
    head_signature = db.Column(db.String(500))

    letterhead = db.Column(db.String(500))
    footer = db.Column(db.Text)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ---------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------
class AuditLog(db.Model):
    """Audit trail for letter, user and village profile changes."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    email_snapshot = db.Column(db.String(255), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    user = db.relationship("User", backref=db.backref("audit_entries", lazy=True))
