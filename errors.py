from typing import List, Optional


class CatalogError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CatalogError):
    """Missing or malformed input. `fields` names every offending field."""

    status_code = 400

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.fields = list(fields or [])


class UploadTooLarge(ValidationError):
    status_code = 413


class NotFoundError(CatalogError):
    status_code = 404


class UpstreamUnavailable(CatalogError):
    """The document store could not be reached."""

    status_code = 503
