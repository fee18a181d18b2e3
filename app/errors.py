"""Failures the archive core reports to the request boundary.

Every one of these is recoverable: the route is rejected with the status
carried on the exception and nothing else is affected.
"""


class ArchiveError(Exception):
    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    @property
    def error(self) -> str:
        return type(self).__name__


class UnknownCategory(ArchiveError):
    status_code = 404

    def __init__(self, category: str, status_code: int | None = None):
        super().__init__(f"Unknown category: {category}", status_code)
        self.category = category


class DuplicateSlug(ArchiveError):
    status_code = 409

    def __init__(self, slug: str):
        super().__init__(
            f"The slug '{slug}' already exists in the archive. Slugs must be unique.")
        self.slug = slug


class NotFound(ArchiveError):
    status_code = 404


class ValidationError(ArchiveError):
    status_code = 422

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class ParseDegraded(ArchiveError):
    """Body content could not be (fully) parsed. Recorded, never raised."""

    status_code = 200
