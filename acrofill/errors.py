"""Exception taxonomy for the detection / fill pipeline.

Only ``DocumentParseError`` (and ``DescriptionServiceError`` for the vision
service) ever reaches a caller.  The per-field errors are raised inside the
pipeline and recovered where they are raised.
"""


class AcroFillError(Exception):
    """Base class for everything raised by acrofill."""


class DocumentParseError(AcroFillError):
    """The buffer is not a readable PDF, or it has no document catalog."""


class FieldReadError(AcroFillError):
    """A single field could not be read; it falls back to minimal defaults."""


class GeometryLookupFailure(AcroFillError):
    """No strategy could resolve a field's rectangle or page."""


class FieldWriteError(AcroFillError):
    """Writing a value into one field failed; the fill continues."""


class FlattenError(AcroFillError):
    """Flattening failed; the filled but interactive document is returned."""


class DescriptionServiceError(AcroFillError):
    """The page-description service was unreachable, timed out or refused."""
