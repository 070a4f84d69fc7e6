"""
inferret config package public API.

File: src/inferret/config/__init__.py

Purpose
- Export the Inferfile model, loader entrypoints, runtime settings and error types.

Functional requirements
- Fail fast with clear load errors that name the offending document line.
"""

from inferret.config.loader import (
    ConfigLoadError,
    InferfileParseError,
    InferfileReferenceError,
    check_file_references,
    load_inferfile,
    parse_inferfile,
    validate_inferfile,
)
from inferret.config.schema import (
    Configuration,
    FileSpec,
    InferenceSpec,
    SourceLocation,
    TagSpec,
)
from inferret.config.settings import RuntimeSettings, load_settings

__all__ = [
    "ConfigLoadError",
    "Configuration",
    "FileSpec",
    "InferenceSpec",
    "InferfileParseError",
    "InferfileReferenceError",
    "RuntimeSettings",
    "SourceLocation",
    "TagSpec",
    "check_file_references",
    "load_inferfile",
    "load_settings",
    "parse_inferfile",
    "validate_inferfile",
]
