"""
Sidebar navigation structure (UI visibility only; security enforced in routes).

Entries without a capability are shown to every signed-in user. Entries with a
capability are shown only when the user's role grants it, so a user with no
role or an unknown role never sees them.
"""

from __future__ import annotations

from typing import Any

from .security import CAP_LETTER_CREATE, CAP_USERS_MANAGE, user_capabilities

NAV_SECTIONS = [
    {
        "key": "home",
        "label": None,
        "items": [
            {"label": "Beranda", "endpoint": "dashboard.index", "capability": None},
        ],
    },
    {
        "key": "letters",
        "label": "Surat",
        "items": [
            {"label": "Daftar Surat", "endpoint": "letters.list_letters", "capability": None},
            {"label": "Buat Surat", "endpoint": "letters.create_letter", "capability": CAP_LETTER_CREATE},
            {"label": "Menunggu Persetujuan", "endpoint": "letters.pending_letters", "capability": None},
            {"label": "Arsip Surat", "endpoint": "letters.archived_letters", "capability": None},
        ],
    },
    {
        "key": "management",
        "label": None,
        "items": [
            {"label": "Manajemen Pengguna", "endpoint": "users.list_users", "capability": CAP_USERS_MANAGE},
            {"label": "Profil Desa", "endpoint": "village.profile", "capability": None},
            {"label": "Pengaturan", "endpoint": "settings.account", "capability": None},
        ],
    },
]


def build_navigation(user: Any) -> list[dict]:
    """Return the sections/items visible to the given user."""
    if user is None or not getattr(user, "is_authenticated", False):
        return []

    capabilities = user_capabilities(user)
    visible_sections = []

    for section in NAV_SECTIONS:
        visible_items = [
            item
            for item in section["items"]
            if item["capability"] is None or item["capability"] in capabilities
        ]
        if visible_items:
            visible_sections.append(
                {"key": section["key"], "label": section["label"], "items": visible_items}
            )

    return visible_sections
