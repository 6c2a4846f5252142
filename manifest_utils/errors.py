"""Manifest resolution errors.

Everything raised on purpose by manifest_utils derives from ManifestError, so
the web layer can turn any of them into a 400 with one except clause.
"""


class ManifestError(Exception):
    """Base exception for manifest resolution failures."""


class MalformedManifest(ManifestError):
    """Parsed manifest input is not a JSON object."""


class ManifestNotFound(ManifestError):
    """No declared, guessed, or synthesizable manifest for a document."""


class UnexpectedContentType(ManifestError):
    """Content is neither JSON nor HTML."""


class FetchFailed(ManifestError):
    """Transport failure or non-success HTTP status."""

    def __init__(self, message: str, *, url: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class FetchCancelled(FetchFailed):
    """The fetch chain was aborted by the caller."""
