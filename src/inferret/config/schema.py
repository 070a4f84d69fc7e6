"""
inferret — Inferfile configuration model.

File: src/inferret/config/schema.py

Purpose
- Typed, immutable tree for a parsed Inferfile: files -> tags -> inferences.

What should be included in this file
- Frozen dataclasses with field validation in ``__post_init__``.
- Document-order traversal helpers used by the orchestrator.

Functional requirements
- Zero files is a legal configuration.
- Tag names are unique within one file; reuse across files is independent.
- ``TagSpec.code`` stays empty until the region extractor produces a resolved tree.

Non-functional requirements
- No I/O here; the loader and extractor own filesystem access.
"""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from inferret.constants import (
    DEFAULT_COUNT,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    DEFAULT_THRESHOLD,
)


def _validate_non_empty_str(value: object, field_name: str, *, strip: bool = True) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")
    normalized = value.strip() if strip else value
    if not normalized:
        raise ValueError(f"{field_name} cannot be empty")
    return normalized


def _validate_int(value: object, field_name: str, *, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{field_name} must be an integer")
    if value < minimum:
        raise ValueError(f"{field_name} must be >= {minimum}")
    return value


def _validate_real(
    value: object,
    field_name: str,
    *,
    minimum: float,
    maximum: float | None = None,
) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{field_name} must be a number")
    normalized = float(value)
    if not math.isfinite(normalized):
        raise ValueError(f"{field_name} must be finite")
    if normalized < minimum:
        raise ValueError(f"{field_name} must be >= {minimum}")
    if maximum is not None and normalized > maximum:
        raise ValueError(f"{field_name} must be <= {maximum}")
    return normalized


@dataclass(frozen=True, slots=True)
class SourceLocation:
    """Position of a block inside the Inferfile."""

    document: str
    line: int

    def __post_init__(self) -> None:
        _validate_int(self.line, "SourceLocation.line", minimum=1)

    def __str__(self) -> str:
        return f"{self.document} line {self.line}"


@dataclass(frozen=True, slots=True)
class InferenceSpec:
    """One natural-language claim plus its sampling parameters."""

    assertion: str
    model: str
    count: int = DEFAULT_COUNT
    threshold: float = DEFAULT_THRESHOLD
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    tag_name: str = ""
    location: SourceLocation | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "assertion",
            _validate_non_empty_str(self.assertion, "InferenceSpec.assertion"),
        )
        object.__setattr__(
            self, "model", _validate_non_empty_str(self.model, "InferenceSpec.model")
        )
        _validate_int(self.count, "InferenceSpec.count", minimum=1)
        object.__setattr__(
            self,
            "threshold",
            _validate_real(self.threshold, "InferenceSpec.threshold", minimum=0.0, maximum=1.0),
        )
        _validate_int(self.max_tokens, "InferenceSpec.max_tokens", minimum=0)
        object.__setattr__(
            self,
            "temperature",
            _validate_real(self.temperature, "InferenceSpec.temperature", minimum=0.0),
        )
        if not isinstance(self.tag_name, str):
            raise TypeError("InferenceSpec.tag_name must be a string")

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "assertion": self.assertion,
            "model": self.model,
            "count": self.count,
            "threshold": self.threshold,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "tag": self.tag_name,
        }
        if self.location is not None:
            payload["line"] = self.location.line
        return payload


@dataclass(frozen=True, slots=True)
class TagSpec:
    """Named source region and the inferences asserted about it."""

    name: str
    inferences: tuple[InferenceSpec, ...] = ()
    code: str = ""
    location: SourceLocation | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", _validate_non_empty_str(self.name, "TagSpec.name"))
        object.__setattr__(self, "inferences", tuple(self.inferences))
        for index, inference in enumerate(self.inferences):
            if not isinstance(inference, InferenceSpec):
                raise TypeError(f"TagSpec.inferences[{index}] must be InferenceSpec")
        if not isinstance(self.code, str):
            raise TypeError("TagSpec.code must be a string")


@dataclass(frozen=True, slots=True)
class FileSpec:
    """Source file referenced by the Inferfile."""

    path: str
    resolved_path: Path
    tags: tuple[TagSpec, ...] = ()
    location: SourceLocation | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", _validate_non_empty_str(self.path, "FileSpec.path"))
        object.__setattr__(self, "resolved_path", Path(self.resolved_path))
        object.__setattr__(self, "tags", tuple(self.tags))

        seen: set[str] = set()
        for index, tag in enumerate(self.tags):
            if not isinstance(tag, TagSpec):
                raise TypeError(f"FileSpec.tags[{index}] must be TagSpec")
            if tag.name in seen:
                raise ValueError(f"duplicate tag {tag.name!r} in file {self.path}")
            seen.add(tag.name)

    def tag(self, name: str) -> TagSpec:
        for tag in self.tags:
            if tag.name == name:
                return tag
        raise KeyError(name)


@dataclass(frozen=True, slots=True)
class Configuration:
    """Root of a parsed Inferfile."""

    files: tuple[FileSpec, ...] = ()
    source: Path | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "files", tuple(self.files))
        for index, file_spec in enumerate(self.files):
            if not isinstance(file_spec, FileSpec):
                raise TypeError(f"Configuration.files[{index}] must be FileSpec")

    def iter_inferences(self) -> Iterator[tuple[FileSpec, TagSpec, InferenceSpec]]:
        """Yield every (file, tag, inference) triple in document order."""

        for file_spec in self.files:
            for tag in file_spec.tags:
                for inference in tag.inferences:
                    yield file_spec, tag, inference

    @property
    def inference_count(self) -> int:
        return sum(1 for _ in self.iter_inferences())


__all__ = [
    "Configuration",
    "FileSpec",
    "InferenceSpec",
    "SourceLocation",
    "TagSpec",
]
