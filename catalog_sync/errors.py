"""Exception hierarchy shared across the sync tool."""

from __future__ import annotations


class CatalogSyncError(Exception):
    """Base class for errors raised by catalog_sync."""


class ConfigError(CatalogSyncError):
    """Missing or invalid configuration."""


class SourceApiError(CatalogSyncError):
    """The remote tabular source returned a non-success response."""

    def __init__(self, action: str, code: int | None, message: str) -> None:
        self.action = action
        self.code = code
        self.message = message
        super().__init__(f"{action}: {code} - {message}")


class AuthError(SourceApiError):
    """Tenant access token could not be obtained."""


class MissingField(CatalogSyncError):
    """A record lacks a field its parser requires."""

    def __init__(self, record_kind: str, field_name: str) -> None:
        self.record_kind = record_kind
        self.field_name = field_name
        super().__init__(f"{record_kind} missing '{field_name}'")


class UnresolvedReference(CatalogSyncError):
    """A linked brand or category could not be found (strict mode only)."""

    def __init__(self, record_id: str, field_name: str, value: str | None) -> None:
        self.record_id = record_id
        self.field_name = field_name
        self.value = value
        super().__init__(f"{record_id}: unresolved {field_name} {value!r}")


class MediaError(CatalogSyncError):
    """Base class for per-asset failures."""


class ResolutionFailed(MediaError):
    def __init__(self, file_token: str, code: int | None, message: str) -> None:
        self.file_token = file_token
        self.code = code
        self.message = message
        super().__init__(f"Failed to get download URL for {file_token}: {code} - {message}")


class DownloadFailed(MediaError):
    pass


class TranscodeFailed(MediaError):
    pass


class GitError(CatalogSyncError):
    pass
