"""
errors.py — Exception taxonomy for the report renderer.

Only ConfigError ever reaches a caller of the public API. The other two are
raised internally and recovered at the nearest boundary: the parser turns a
StructuralParseFailure into literal text, and the section fault boundary
turns a RenderFault into a raw-text fallback.
"""


class ReportError(Exception):
    """Base class for all renderer errors."""


class ConfigError(ReportError):
    """config.yaml is malformed or holds an invalid value."""


class StructuralParseFailure(ReportError):
    """A block construct could not be converted into the document model."""


class RenderFault(ReportError):
    """A renderer met a node it cannot draw."""

    def __init__(self, message: str, node: object = None):
        super().__init__(message)
        self.node = node
