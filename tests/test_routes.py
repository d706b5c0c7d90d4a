"""
End-to-end route tests through the Flask test client.
"""

import io

import pytest

from suratdesa.extensions import db
from suratdesa.letters import create_letter
from suratdesa.models import Letter, User
from suratdesa.village import get_village_profile

from conftest import PASSWORD, login, make_draft


@pytest.fixture
def accounts(make_user):
    return {
        "admin": make_user("admin@desa.id", "admin"),
        "staff": make_user("staf@desa.id", "staff"),
        "operator": make_user("operator@desa.id", "operator"),
        "viewer": make_user("warga@desa.id", "viewer"),
    }


@pytest.fixture
def make_letter(app):
    """Create a letter through the service layer; returns its id."""

    def _make(creator_id: int, status: str = "draft", **draft_fields) -> int:
        with app.test_request_context():
            user = db.session.get(User, creator_id)
            letter = create_letter(make_draft(**draft_fields), status, user)
            return letter.id

    return _make


def _text(response) -> str:
    return response.get_data(as_text=True)


class TestAuthPages:
    def test_home_redirects_anonymous_to_login(self, client):
        response = client.get("/")
        assert response.status_code == 302
        assert "/auth/login" in response.headers["Location"]

    def test_protected_page_requires_login(self, client):
        response = client.get("/letters/")
        assert response.status_code == 302
        assert "/auth/login" in response.headers["Location"]

    def test_login_success(self, client, accounts):
        response = login(client, "admin@desa.id")
        assert response.status_code == 302
        assert response.headers["Location"].endswith("/dashboard")

        page = client.get("/dashboard")
        assert page.status_code == 200
        assert "Selamat datang" in _text(page)

    def test_login_failure_shows_message(self, client, accounts):
        response = login(client, "admin@desa.id", "salah-sekali")
        assert response.status_code == 200
        assert "Email atau password tidak valid" in _text(response)

    def test_repeated_failures_lock_the_email(self, client, app, accounts):
        """After LOGIN_MAX_ATTEMPTS failures even the right password is refused."""
        for _ in range(app.config["LOGIN_MAX_ATTEMPTS"]):
            assert login(client, "admin@desa.id", "salah").status_code == 200

        response = login(client, " Admin@Desa.id ")
        assert response.status_code == 429
        assert "Terlalu banyak percobaan" in _text(response)
        assert client.get("/dashboard").status_code == 302

        # Other accounts are not affected
        assert login(client, "staf@desa.id").status_code == 302

    def test_successful_logins_are_not_counted(self, client, app, accounts):
        for _ in range(app.config["LOGIN_MAX_ATTEMPTS"] + 1):
            assert login(client, "staf@desa.id").status_code == 302
            client.post("/auth/logout")

    def test_login_limit_follows_config(self, client, app, accounts):
        app.config["LOGIN_MAX_ATTEMPTS"] = 2
        login(client, "admin@desa.id", "salah")
        login(client, "admin@desa.id", "salah")
        assert login(client, "admin@desa.id").status_code == 429

    def test_signup_creates_viewer_and_signs_in(self, client, app):
        response = client.post(
            "/auth/signup",
            data={
                "display_name": "Siti",
                "email": "siti@desa.id",
                "password": "kopi-tubruk",
                "confirm_password": "kopi-tubruk",
            },
        )
        assert response.status_code == 302

        with app.app_context():
            assert User.query.filter_by(email="siti@desa.id").one().role == "viewer"
        assert client.get("/dashboard").status_code == 200

    def test_signup_after_failed_logins_for_same_email(self, client, app):
        """A fresh account is signed in even when its email hit the login limit."""
        for _ in range(app.config["LOGIN_MAX_ATTEMPTS"]):
            login(client, "siti@desa.id", "tebak-tebakan")

        response = client.post(
            "/auth/signup",
            data={
                "display_name": "Siti",
                "email": "siti@desa.id",
                "password": "kopi-tubruk",
                "confirm_password": "kopi-tubruk",
            },
        )
        assert response.status_code == 302
        assert response.headers["Location"].endswith("/dashboard")
        assert client.get("/dashboard").status_code == 200

    def test_signup_short_password(self, client):
        response = client.post(
            "/auth/signup",
            data={"display_name": "Siti", "email": "siti@desa.id", "password": "abcde", "confirm_password": "abcde"},
        )
        assert "Password harus minimal 6 karakter" in _text(response)

    def test_logout(self, client, accounts):
        login(client, "staf@desa.id")
        response = client.post("/auth/logout")
        assert response.status_code == 302
        assert client.get("/dashboard").status_code == 302

    def test_logout_rejects_get(self, client, accounts):
        login(client, "staf@desa.id")
        assert client.get("/auth/logout").status_code == 405
        assert client.get("/dashboard").status_code == 200

    def test_forgot_password(self, client, accounts):
        response = client.post("/auth/forgot-password", data={"email": "staf@desa.id"})
        assert "Silakan periksa email Anda" in _text(response)

    def test_seed_admin_only_when_empty(self, client, app):
        assert client.get("/auth/seed-admin").status_code == 200

        response = client.post("/auth/seed-admin", data={"email": "kades@desa.id", "password": PASSWORD})
        assert response.status_code == 302
        with app.app_context():
            assert User.query.one().role == "admin"

        assert client.get("/auth/seed-admin").status_code == 302


class TestNavigationRendering:
    def test_admin_sidebar_has_user_management(self, client, accounts):
        login(client, "admin@desa.id")
        assert "Manajemen Pengguna" in _text(client.get("/dashboard"))

    def test_viewer_sidebar_hides_restricted_entries(self, client, accounts):
        login(client, "warga@desa.id")
        body = _text(client.get("/dashboard"))
        assert "Manajemen Pengguna" not in body
        assert "Buat Surat" not in body
        assert "Daftar Surat" in body


class TestLetterPages:
    def test_operator_submits_letter(self, client, app, accounts):
        login(client, "operator@desa.id")
        response = client.post(
            "/letters/new",
            data={
                "type": "PENGUMUMAN",
                "subject": "Jadwal posyandu",
                "priority": "high",
                "content": "Posyandu dilaksanakan hari Sabtu.",
                "recipient": "Warga RT 01",
                "action": "submit",
            },
        )
        assert response.status_code == 302

        with app.app_context():
            letter = Letter.query.one()
            assert letter.status == "pending"
            assert letter.letter_number.startswith("001/PENG/DESA/")

        detail = client.get(response.headers["Location"])
        assert "Surat telah disimpan dengan nomor: 001/PENG/DESA/" in _text(detail)

    def test_invalid_submission_rerenders_form(self, client, accounts):
        login(client, "operator@desa.id")
        response = client.post("/letters/new", data={"subject": "Tanpa isi", "action": "submit"})
        assert response.status_code == 200
        assert "Isi surat harus diisi" in _text(response)

    def test_viewer_cannot_compose(self, client, accounts):
        login(client, "warga@desa.id")
        assert client.get("/letters/new").status_code == 403
        assert client.post("/letters/new", data={"subject": "x"}).status_code == 403

    def test_missing_letter_shows_not_found_page(self, client, accounts):
        login(client, "warga@desa.id")
        response = client.get("/letters/9999")
        assert response.status_code == 404
        assert "Surat tidak ditemukan" in _text(response)

    def test_detail_shows_letterhead(self, client, accounts, make_letter):
        letter_id = make_letter(accounts["operator"].id)
        login(client, "warga@desa.id")

        body = _text(client.get(f"/letters/{letter_id}"))

        assert "Desa Sukamaju" in body
        assert "Undangan rapat desa" in body

    def test_list_filters_by_status(self, client, accounts, make_letter):
        make_letter(accounts["operator"].id, "draft", subject="Draf surat")
        make_letter(accounts["operator"].id, "pending", subject="Surat diajukan")
        login(client, "staf@desa.id")

        body = _text(client.get("/letters/pending"))

        assert "Surat diajukan" in body
        assert "Draf surat" not in body

    def test_staff_approves(self, client, app, accounts, make_letter):
        letter_id = make_letter(accounts["operator"].id, "pending")
        login(client, "staf@desa.id")

        response = client.post(f"/letters/{letter_id}/transition", data={"action": "approve"})

        assert response.status_code == 302
        with app.app_context():
            assert db.session.get(Letter, letter_id).status == "approved"

    def test_operator_approval_is_refused(self, client, app, accounts, make_letter):
        letter_id = make_letter(accounts["operator"].id, "pending")
        login(client, "operator@desa.id")

        client.post(f"/letters/{letter_id}/transition", data={"action": "approve"})

        with app.app_context():
            assert db.session.get(Letter, letter_id).status == "pending"

    def test_edit_draft(self, client, app, accounts, make_letter):
        letter_id = make_letter(accounts["operator"].id)
        login(client, "operator@desa.id")
        assert client.get(f"/letters/{letter_id}/edit").status_code == 200

        response = client.post(
            f"/letters/{letter_id}/edit",
            data={"subject": "Perihal diperbarui", "content": "Isi", "recipient": "Warga", "action": "draft"},
        )

        assert response.status_code == 302
        with app.app_context():
            assert db.session.get(Letter, letter_id).subject == "Perihal diperbarui"

    def test_edit_and_submit_invalid_saves_nothing(self, client, app, accounts, make_letter):
        letter_id = make_letter(accounts["operator"].id)
        login(client, "operator@desa.id")

        response = client.post(
            f"/letters/{letter_id}/edit",
            data={"subject": "Perihal diperbarui", "content": "", "recipient": "Warga", "action": "submit"},
        )

        assert response.status_code == 200
        assert "Isi surat harus diisi" in _text(response)
        with app.app_context():
            letter = db.session.get(Letter, letter_id)
            assert letter.subject == "Undangan rapat desa"
            assert letter.status == "draft"

    def test_attachment_upload_and_download(self, client, app, accounts):
        login(client, "operator@desa.id")
        client.post(
            "/letters/new",
            data={
                "subject": "Dengan lampiran",
                "action": "draft",
                "attachments": (io.BytesIO(b"data lampiran"), "lampiran.txt"),
            },
            content_type="multipart/form-data",
        )
        with app.app_context():
            url = Letter.query.one().attachments[0].url

        response = client.get(url)
        assert response.status_code == 200
        assert response.data == b"data lampiran"


class TestUserManagement:
    def test_only_admin_lists_users(self, client, accounts):
        login(client, "staf@desa.id")
        assert client.get("/users/").status_code == 403

        client.post("/auth/logout")
        login(client, "admin@desa.id")
        body = _text(client.get("/users/"))
        assert "warga@desa.id" in body

    def test_admin_changes_role(self, client, app, accounts):
        login(client, "admin@desa.id")
        response = client.post(f"/users/{accounts['viewer'].id}/role", data={"role": "operator"})

        assert response.status_code == 302
        with app.app_context():
            assert db.session.get(User, accounts["viewer"].id).role == "operator"


class TestVillagePages:
    def test_viewer_sees_profile_but_cannot_save(self, client, accounts):
        login(client, "warga@desa.id")
        assert client.get("/village/").status_code == 200
        assert client.post("/village/", data={"name": "Desa Lain"}).status_code == 403

    def test_staff_saves_profile(self, client, app, accounts):
        login(client, "staf@desa.id")
        response = client.post("/village/", data={"name": "Desa Mekarsari"})

        assert response.status_code == 302
        with app.app_context():
            profile = get_village_profile()
            assert profile.name == "Desa Mekarsari"
            assert profile.head_name == "H. Sumarna, S.Sos"

    def test_logo_upload_returns_url(self, client, accounts):
        login(client, "staf@desa.id")
        response = client.post(
            "/village/logo",
            data={"logo_type": "village_logo", "file": (io.BytesIO(b"\x89PNG"), "logo.png")},
            content_type="multipart/form-data",
        )

        assert response.status_code == 200
        payload = response.get_json()
        assert payload["logo_type"] == "village_logo"
        assert payload["url"].startswith("/files/village/village_logo_")

    def test_logo_upload_rejects_non_image(self, client, accounts):
        login(client, "staf@desa.id")
        response = client.post(
            "/village/logo",
            data={"logo_type": "village_logo", "file": (io.BytesIO(b"MZ"), "logo.exe")},
            content_type="multipart/form-data",
        )
        assert response.status_code == 400
        assert "error" in response.get_json()


class TestAccountSettings:
    def test_viewer_may_update_own_profile(self, client, app, accounts):
        """Self-service endpoints pass the read-only guard."""
        login(client, "warga@desa.id")
        response = client.post("/settings/", data={"display_name": "Warga Teladan", "phone": "0812"})

        assert response.status_code == 302
        with app.app_context():
            assert db.session.get(User, accounts["viewer"].id).display_name == "Warga Teladan"

    def test_viewer_may_change_password(self, client, accounts):
        login(client, "warga@desa.id")
        response = client.post(
            "/settings/password",
            data={"current_password": PASSWORD, "new_password": "kopi-tubruk", "confirm_password": "kopi-tubruk"},
        )
        assert response.status_code == 302

        client.post("/auth/logout")
        assert login(client, "warga@desa.id", "kopi-tubruk").status_code == 302
