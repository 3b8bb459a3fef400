"""Exceptions that abort an export.

Everything else (unknown nodes or marks, out-of-window headings, malformed
units, unresolved placeholders, external images) degrades gracefully and is
only logged.

Hierarchy::

    ExportError (ValueError)
    ├── InvalidDocumentError
    ├── MissingTemplateError
    └── TemplateConfigError
"""


class ExportError(ValueError):
    """Base class for fatal export errors."""


class InvalidDocumentError(ExportError):
    """The input is not a ``doc``-rooted document tree."""


class MissingTemplateError(ExportError):
    """No template configuration was supplied for the export."""


class TemplateConfigError(ExportError):
    """A template configuration file or mapping is unusable."""
