"""Error taxonomy for preset application."""

from __future__ import annotations


class AidotError(Exception):
    """Base class for every error raised by aidot."""


class PresetError(AidotError):
    """The preset directory or its manifest cannot be parsed."""


class ConfigurationError(AidotError):
    """The preset maps sources to destinations ambiguously."""


class TransformError(AidotError):
    """A source file cannot be transformed or structurally merged."""


class FilesystemError(AidotError):
    """A destination cannot be read or written, or escapes its root."""


class ConflictPromptError(AidotError):
    """An interactive decision was required but nobody can answer it."""
