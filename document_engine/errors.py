"""Exception hierarchy for the document generation engine."""


class DocumentEngineError(Exception):
    """Base class for every error raised by the engine."""


class ValidationError(DocumentEngineError, ValueError):
    """Invalid input detected before any side effect takes place."""

    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.field = field


class AssetLoadError(DocumentEngineError):
    """A decorative image (logo, barcode) could not be loaded or decoded."""


class PersistenceError(DocumentEngineError):
    """The sequence counter record could not be read or written."""


class CompositionFailure(DocumentEngineError):
    """The rendering backend failed while the document was being laid out."""
