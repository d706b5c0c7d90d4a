"""
Letter composition form state.

The compose page has four tabs (general, content, recipients, attachments).
All of their fields live in one LetterDraft so the page can be re-rendered with
everything the user typed, and so the two exits share the same checks:

- "draft":   subject only
- "pending": subject, content and at least one recipient
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from werkzeug.datastructures import FileStorage

from .errors import ValidationError
from .models import LETTER_TYPES, PRIORITIES

STEPS = ("general", "content", "recipients", "attachments")
SUBMIT_STATUSES = ("draft", "pending")


@dataclass
class LetterDraft:
    type: str = "UMUM"
    subject: str = ""
    priority: str = "medium"
    content: str = ""
    recipient: str = ""
    additional_recipients: list[str] = field(default_factory=list)
    notes: str = ""
    files: list[FileStorage] = field(default_factory=list)

    @classmethod
    def from_form(cls, form: Any, files: Any = None) -> "LetterDraft":
        """Build from request.form / request.files."""
        uploads = []
        if files is not None:
            uploads = [f for f in files.getlist("attachments") if f and f.filename]
        return cls(
            type=(form.get("type") or "UMUM").strip(),
            subject=(form.get("subject") or "").strip(),
            priority=(form.get("priority") or "medium").strip(),
            content=form.get("content") or "",
            recipient=(form.get("recipient") or "").strip(),
            additional_recipients=[r for r in form.getlist("additional_recipients")],
            notes=(form.get("notes") or "").strip(),
            files=uploads,
        )

    @classmethod
    def from_letter(cls, letter: Any) -> "LetterDraft":
        recipients = list(letter.recipients or [])
        return cls(
            type=letter.type or "UMUM",
            subject=letter.subject or "",
            priority=letter.priority or "medium",
            content=letter.content or "",
            recipient=recipients[0] if recipients else "",
            additional_recipients=recipients[1:],
            notes=letter.notes or "",
        )

    @property
    def recipients(self) -> list[str]:
        """Main recipient followed by non-blank additional recipients, without duplicates."""
        result: list[str] = []
        for name in [self.recipient, *self.additional_recipients]:
            name = (name or "").strip()
            if name and name not in result:
                result.append(name)
        return result

    def step_errors(self, step: str) -> list[str]:
        if step not in STEPS:
            raise ValueError(f"Unknown form step: {step}")

        errors = []
        if step == "general":
            if self.type not in LETTER_TYPES:
                errors.append("Jenis surat tidak valid")
            if self.priority not in PRIORITIES:
                errors.append("Prioritas tidak valid")
            if not self.subject:
                errors.append("Perihal surat harus diisi")
        elif step == "content":
            if not self.content.strip():
                errors.append("Isi surat harus diisi")
        elif step == "recipients":
            if not self.recipients:
                errors.append("Penerima surat harus dipilih")
        return errors

    def validate_step(self, step: str) -> None:
        errors = self.step_errors(step)
        if errors:
            raise ValidationError(errors[0])

    def validate_for(self, status: str) -> None:
        """Exit check for saving as draft or submitting for approval."""
        if status not in SUBMIT_STATUSES:
            raise ValidationError("Status surat tidak valid")

        self.validate_step("general")
        if status == "pending":
            self.validate_step("content")
            self.validate_step("recipients")
