"""Marker-delimited source region extraction."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import replace
from enum import Enum
from pathlib import Path

from inferret.config.schema import Configuration, FileSpec, TagSpec
from inferret.constants import END_MARKER_PREFIX, START_MARKER_PREFIX

logger = logging.getLogger(__name__)

LineMatcher = Callable[[str], bool]


class MarkerMatching(str, Enum):
    """How marker lines are recognised."""

    # ``Infer: <name>`` must stand alone: no letter before ``Infer:`` and no
    # word character or ``-`` after the name.
    EXACT = "exact"
    # Plain substring containment.
    SUBSTRING = "substring"


class ExtractionError(RuntimeError):
    """Base error for region extraction failures."""

    def __init__(self, message: str, *, path: str) -> None:
        self.path = path
        super().__init__(message)


class RegionReadError(ExtractionError):
    """A referenced source file could not be read."""

    def __init__(self, path: str, cause: OSError) -> None:
        self.cause = cause
        detail = cause.strerror or str(cause)
        super().__init__(f"unable to read {path}: {detail}", path=path)


class UnterminatedRegionError(ExtractionError):
    """A start marker was found but its end marker never was."""

    def __init__(self, path: str, tag_name: str, start_line: int) -> None:
        self.tag_name = tag_name
        self.start_line = start_line
        super().__init__(
            f"unterminated region {tag_name!r} in {path}: "
            f"'{START_MARKER_PREFIX}{tag_name}' at line {start_line} has no "
            f"matching '{END_MARKER_PREFIX}{tag_name}'",
            path=path,
        )


def extract_regions(
    file_spec: FileSpec,
    *,
    matching: MarkerMatching = MarkerMatching.EXACT,
) -> FileSpec:
    """Return a copy of ``file_spec`` whose tags carry their extracted code.

    The file is read once. Each tag captures the lines strictly between its
    first start marker and the next end marker, line endings included. A tag
    whose start marker never appears gets empty code.
    """

    lines = _read_lines(file_spec.resolved_path, file_spec.path)
    tags = tuple(
        replace(tag, code=_extract_tag(lines, tag, path=file_spec.path, matching=matching))
        for tag in file_spec.tags
    )
    return replace(file_spec, tags=tags)


def resolve_configuration(
    configuration: Configuration,
    *,
    matching: MarkerMatching = MarkerMatching.EXACT,
) -> Configuration:
    """Extract every file of ``configuration`` in document order."""

    files = tuple(
        extract_regions(file_spec, matching=matching) for file_spec in configuration.files
    )
    return replace(configuration, files=files)


def start_marker(tag_name: str, matching: MarkerMatching = MarkerMatching.EXACT) -> LineMatcher:
    return _matcher(START_MARKER_PREFIX, tag_name, matching)


def end_marker(tag_name: str, matching: MarkerMatching = MarkerMatching.EXACT) -> LineMatcher:
    return _matcher(END_MARKER_PREFIX, tag_name, matching)


def _matcher(prefix: str, tag_name: str, matching: MarkerMatching) -> LineMatcher:
    marker = prefix + tag_name
    if matching is MarkerMatching.SUBSTRING:
        return lambda line: marker in line
    pattern = re.compile(rf"(?<![A-Za-z]){re.escape(marker)}(?![\w-])")
    return lambda line: pattern.search(line) is not None


def _read_lines(path: Path, declared: str) -> list[str]:
    try:
        with path.open(encoding="utf-8", errors="replace", newline="") as handle:
            text = handle.read()
    except OSError as exc:
        raise RegionReadError(declared, exc) from exc
    return text.splitlines(keepends=True)


def _extract_tag(
    lines: Sequence[str],
    tag: TagSpec,
    *,
    path: str,
    matching: MarkerMatching,
) -> str:
    is_start = start_marker(tag.name, matching)
    is_end = end_marker(tag.name, matching)

    start_line: int | None = None
    captured: list[str] = []
    for number, line in enumerate(lines, start=1):
        if start_line is None:
            if is_start(line):
                start_line = number
            continue
        if is_end(line):
            logger.debug(
                "extracted region %r from %s (lines %d-%d)", tag.name, path, start_line, number
            )
            return "".join(captured)
        captured.append(line)

    if start_line is None:
        logger.warning("no '%s%s' marker found in %s", START_MARKER_PREFIX, tag.name, path)
        return ""
    raise UnterminatedRegionError(path, tag.name, start_line)


__all__ = [
    "ExtractionError",
    "LineMatcher",
    "MarkerMatching",
    "RegionReadError",
    "UnterminatedRegionError",
    "end_marker",
    "extract_regions",
    "resolve_configuration",
    "start_marker",
]
