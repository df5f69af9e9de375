"""
Errors raised while turning templates into create requests.
Both are recovered per object; neither ends a run.
"""


class TemplateError(Exception):
    """A template could not be parsed or lacks a required field."""
    pass


class UnsupportedKindError(Exception):
    """A template's type tag or folder maps to no known endpoint."""
    pass
