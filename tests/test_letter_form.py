"""
Tests for the compose form state (LetterDraft).
"""

import io

import pytest
from werkzeug.datastructures import FileStorage, ImmutableMultiDict, MultiDict

from suratdesa.errors import ValidationError
from suratdesa.letter_form import STEPS, LetterDraft

from conftest import add_letter


class TestFromForm:
    def test_reads_all_tabs(self):
        form = ImmutableMultiDict(
            [
                ("type", "UNDANGAN"),
                ("subject", "  Rapat RW  "),
                ("priority", "high"),
                ("content", "Isi"),
                ("recipient", "Ketua RW"),
                ("additional_recipients", "Ketua RT 01"),
                ("additional_recipients", "Ketua RT 02"),
                ("notes", "segera"),
            ]
        )
        draft = LetterDraft.from_form(form)

        assert draft.type == "UNDANGAN"
        assert draft.subject == "Rapat RW"
        assert draft.priority == "high"
        assert draft.recipients == ["Ketua RW", "Ketua RT 01", "Ketua RT 02"]
        assert draft.files == []

    def test_defaults_for_missing_fields(self):
        draft = LetterDraft.from_form(ImmutableMultiDict())
        assert draft.type == "UMUM"
        assert draft.priority == "medium"
        assert draft.recipients == []

    def test_empty_file_inputs_are_skipped(self):
        files = MultiDict(
            [
                ("attachments", FileStorage(stream=io.BytesIO(b"x"), filename="a.txt")),
                ("attachments", FileStorage(stream=io.BytesIO(b""), filename="")),
            ]
        )
        draft = LetterDraft.from_form(ImmutableMultiDict(), files)
        assert [f.filename for f in draft.files] == ["a.txt"]


class TestValidation:
    def test_steps_are_fixed(self):
        assert STEPS == ("general", "content", "recipients", "attachments")

    def test_unknown_step_raises(self):
        with pytest.raises(ValueError):
            LetterDraft().step_errors("signature")

    def test_draft_exit_needs_subject_only(self):
        LetterDraft(subject="Perihal").validate_for("draft")

        with pytest.raises(ValidationError, match="Perihal"):
            LetterDraft().validate_for("draft")

    def test_pending_exit_needs_content_and_recipient(self):
        draft = LetterDraft(subject="Perihal", content="Isi")
        assert draft.step_errors("recipients") == ["Penerima surat harus dipilih"]
        with pytest.raises(ValidationError):
            draft.validate_for("pending")

        draft.recipient = "Warga"
        draft.validate_for("pending")

    def test_invalid_type_and_priority(self):
        errors = LetterDraft(type="X", priority="urgent", subject="a").step_errors("general")
        assert len(errors) == 2

    def test_unknown_exit_status(self):
        with pytest.raises(ValidationError):
            LetterDraft(subject="a").validate_for("approved")

    def test_attachments_step_never_blocks(self):
        assert LetterDraft().step_errors("attachments") == []


class TestFromLetter:
    def test_round_trip_from_stored_letter(self, ctx):
        letter = add_letter(recipients=["Kepala Dusun", "Ketua RT 03"], notes="catatan", priority="low")

        draft = LetterDraft.from_letter(letter)

        assert draft.recipient == "Kepala Dusun"
        assert draft.additional_recipients == ["Ketua RT 03"]
        assert draft.priority == "low"
        assert draft.notes == "catatan"
