"""aidot: one tool-neutral preset, projected into every AI coding assistant's layout."""

__version__ = "0.3.0"
