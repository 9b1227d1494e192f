"""Exceptions raised by the escape-time engine."""


class FractalError(Exception):
    """Base class for errors raised by :mod:`escapetime`."""


class InvalidViewport(FractalError, ValueError):
    """A viewport violates its invariants and cannot be rendered."""


class InvalidSettings(FractalError, ValueError):
    """Render settings or palette options are out of range."""
