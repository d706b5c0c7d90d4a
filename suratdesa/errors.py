"""
Exceptions raised by the data-access layer.

Routes catch these and turn them into flash messages; nothing here is allowed
to reach the user as a 500.
"""

from __future__ import annotations


class SuratError(Exception):
    """Base class for application errors with a user-facing message."""

    default_message = "Terjadi kesalahan. Silakan coba lagi."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(SuratError):
    """Input rejected before any database or storage call."""

    default_message = "Data yang diisi tidak valid."


class AuthError(SuratError):
    """Authentication failure carrying a provider-style error code."""

    default_message = "Terjadi kesalahan saat masuk. Coba lagi."

    def __init__(self, code: str, message: str | None = None):
        super().__init__(message)
        self.code = code


class PermissionDenied(SuratError):
    default_message = "Anda tidak memiliki akses untuk tindakan ini."


class NumberingError(SuratError):
    default_message = "Gagal membuat nomor surat."


class LetterError(SuratError):
    default_message = "Terjadi kesalahan saat menyimpan surat. Silakan coba lagi."


class TransitionError(LetterError):
    default_message = "Perubahan status surat tidak diizinkan."


class StorageError(SuratError):
    default_message = "Gagal mengunggah berkas."
