"""
inferret — Inferfile loader.

File: src/inferret/config/loader.py

Purpose
- Parse an Inferfile document into the immutable configuration model.

What should be included in this file
- YAML parsing via PyYAML's node composer so every block keeps its line number.
- Strict structural validation: known keys only, typed values, required fields.
- Field defaults for count/threshold/max_tokens/temperature.
- Existence checks for every referenced source file.

Functional requirements
- Malformed documents raise ``InferfileParseError`` naming the document line.
- Missing source files raise ``InferfileReferenceError`` naming the declared path
  and the line of the ``file`` block that declared it.
- No source file content is read here.

Non-functional requirements
- Deterministic: the same document always yields the same tree in document order.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import Final, TypeVar

import yaml
from yaml.constructor import SafeConstructor

from inferret.config.schema import (
    Configuration,
    FileSpec,
    InferenceSpec,
    SourceLocation,
    TagSpec,
)

_NULL_TAG: Final[str] = "tag:yaml.org,2002:null"

_ROOT_KEYS: Final[frozenset[str]] = frozenset({"files"})
_FILE_KEYS: Final[frozenset[str]] = frozenset({"path", "tags"})
_TAG_KEYS: Final[frozenset[str]] = frozenset({"name", "infer"})
_INFER_KEYS: Final[frozenset[str]] = frozenset(
    {"assert", "model", "count", "threshold", "max_tokens", "temperature"}
)

# Document key -> InferenceSpec field for optional numeric settings.
_OPTIONAL_INFER_FIELDS: Final[tuple[tuple[str, str], ...]] = (
    ("count", "count"),
    ("threshold", "threshold"),
    ("max_tokens", "max_tokens"),
    ("temperature", "temperature"),
)

_ModelT = TypeVar("_ModelT")


class ConfigLoadError(ValueError):
    """Raised when an Inferfile or runtime setting cannot be loaded."""


class InferfileParseError(ConfigLoadError):
    """Malformed Inferfile: syntax, types, unknown keys, or missing required fields."""

    def __init__(self, detail: str, *, location: SourceLocation | None = None) -> None:
        self.detail = detail
        self.location = location
        message = detail if location is None else f"{detail} ({location})"
        super().__init__(message)


class InferfileReferenceError(ConfigLoadError):
    """A ``file`` block names a path that does not exist."""

    def __init__(
        self,
        path: str,
        *,
        location: SourceLocation | None,
        reason: str = "file not found",
    ) -> None:
        self.path = path
        self.location = location
        self.reason = reason
        message = f"{reason}: {path}"
        if location is not None:
            message = f"{message} ({location})"
        super().__init__(message)


def load_inferfile(path: str | os.PathLike[str]) -> Configuration:
    """Load and validate an Inferfile from disk."""

    document_path = Path(path).expanduser()
    if not document_path.is_file():
        raise ConfigLoadError(f"inferfile not found: {document_path}")

    try:
        text = document_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"unable to read inferfile {document_path}: {exc}") from exc

    configuration = parse_inferfile(
        text,
        document=str(path),
        base_dir=document_path.resolve().parent,
        source=document_path.resolve(),
    )
    check_file_references(configuration)
    return configuration


def validate_inferfile(path: str | os.PathLike[str]) -> Configuration:
    """Run the loader only; used by the ``validate`` command."""

    return load_inferfile(path)


def parse_inferfile(
    text: str,
    *,
    document: str = "<inferfile>",
    base_dir: Path | None = None,
    source: Path | None = None,
) -> Configuration:
    """Parse Inferfile text without touching the filesystem."""

    root = _compose(text, document)
    resolved_base = base_dir if base_dir is not None else Path.cwd()
    if root is None or _is_null(root):
        return Configuration(files=(), source=source)

    root_items = _mapping_items(root, "inferfile root", document)
    _reject_unknown_keys(root_items, _ROOT_KEYS, "inferfile root", root, document)

    files_node = root_items.get("files")
    file_nodes = _sequence_items(files_node, "files", document) if files_node is not None else ()
    files = tuple(_parse_file(node, document, resolved_base) for node in file_nodes)
    return Configuration(files=files, source=source)


def check_file_references(configuration: Configuration) -> None:
    """Raise ``InferfileReferenceError`` for the first missing source file."""

    for file_spec in configuration.files:
        candidate = file_spec.resolved_path
        if not candidate.exists():
            raise InferfileReferenceError(file_spec.path, location=file_spec.location)
        if not candidate.is_file():
            raise InferfileReferenceError(
                file_spec.path,
                location=file_spec.location,
                reason="not a regular file",
            )


def _parse_file(node: yaml.Node, document: str, base_dir: Path) -> FileSpec:
    location = _location(node, document)
    items = _mapping_items(node, "file block", document)
    _reject_unknown_keys(items, _FILE_KEYS, "file block", node, document)

    raw_path = _required_str(items, "path", "file block", node, document)
    tags_node = items.get("tags")
    tag_nodes = _sequence_items(tags_node, "tags", document) if tags_node is not None else ()

    tags: list[TagSpec] = []
    seen: dict[str, SourceLocation] = {}
    for tag_node in tag_nodes:
        tag = _parse_tag(tag_node, document)
        if tag.name in seen:
            raise InferfileParseError(
                f"duplicate tag {tag.name!r} in file {raw_path} "
                f"(first declared at {seen[tag.name]})",
                location=tag.location,
            )
        seen[tag.name] = tag.location or location
        tags.append(tag)

    return _build(
        FileSpec,
        location,
        "file block",
        path=raw_path,
        resolved_path=_resolve_path(raw_path, base_dir),
        tags=tuple(tags),
        location=location,
    )


def _parse_tag(node: yaml.Node, document: str) -> TagSpec:
    location = _location(node, document)
    items = _mapping_items(node, "tag block", document)
    _reject_unknown_keys(items, _TAG_KEYS, "tag block", node, document)

    name = _required_str(items, "name", "tag block", node, document)
    infer_node = items.get("infer")
    infer_nodes = _sequence_items(infer_node, "infer", document) if infer_node is not None else ()
    inferences = tuple(_parse_inference(item, name, document) for item in infer_nodes)
    return _build(
        TagSpec,
        location,
        "tag block",
        name=name,
        inferences=inferences,
        location=location,
    )


def _parse_inference(node: yaml.Node, tag_name: str, document: str) -> InferenceSpec:
    location = _location(node, document)
    items = _mapping_items(node, "infer block", document)
    _reject_unknown_keys(items, _INFER_KEYS, "infer block", node, document)

    kwargs: dict[str, object] = {
        "assertion": _required_str(items, "assert", "infer block", node, document),
        "model": _required_str(items, "model", "infer block", node, document),
        "tag_name": tag_name,
        "location": location,
    }
    for key, field_name in _OPTIONAL_INFER_FIELDS:
        value_node = items.get(key)
        if value_node is None or _is_null(value_node):
            continue
        kwargs[field_name] = _scalar(value_node, key, document)

    return _build(InferenceSpec, location, "infer block", **kwargs)


def _build(
    factory: Callable[..., _ModelT],
    at: SourceLocation,
    what: str,
    /,
    **fields: object,
) -> _ModelT:
    try:
        return factory(**fields)
    except (TypeError, ValueError) as exc:
        raise InferfileParseError(f"invalid {what}: {exc}", location=at) from exc


def _compose(text: str, document: str) -> yaml.Node | None:
    try:
        return yaml.compose(text, Loader=yaml.SafeLoader)
    except yaml.MarkedYAMLError as exc:
        mark = exc.problem_mark or exc.context_mark
        location = SourceLocation(document, mark.line + 1) if mark is not None else None
        problem = exc.problem or exc.context or "malformed document"
        raise InferfileParseError(f"invalid YAML: {problem}", location=location) from exc
    except yaml.YAMLError as exc:
        raise InferfileParseError(f"invalid YAML in {document}: {exc}") from exc


def _location(node: yaml.Node, document: str) -> SourceLocation:
    return SourceLocation(document, node.start_mark.line + 1)


def _is_null(node: yaml.Node) -> bool:
    return isinstance(node, yaml.ScalarNode) and node.tag == _NULL_TAG


def _mapping_items(node: yaml.Node, what: str, document: str) -> dict[str, yaml.Node]:
    if not isinstance(node, yaml.MappingNode):
        raise InferfileParseError(f"{what} must be a mapping", location=_location(node, document))

    items: dict[str, yaml.Node] = {}
    for key_node, value_node in node.value:
        if not isinstance(key_node, yaml.ScalarNode) or _is_null(key_node):
            raise InferfileParseError(
                f"{what} keys must be strings", location=_location(key_node, document)
            )
        key = str(key_node.value)
        if key in items:
            raise InferfileParseError(
                f"duplicate key {key!r} in {what}", location=_location(key_node, document)
            )
        items[key] = value_node
    return items


def _sequence_items(node: yaml.Node, what: str, document: str) -> tuple[yaml.Node, ...]:
    if _is_null(node):
        return ()
    if not isinstance(node, yaml.SequenceNode):
        raise InferfileParseError(f"{what} must be a list", location=_location(node, document))
    return tuple(node.value)


def _reject_unknown_keys(
    items: dict[str, yaml.Node],
    allowed: frozenset[str],
    what: str,
    node: yaml.Node,
    document: str,
) -> None:
    unknown = sorted(set(items) - allowed)
    if unknown:
        raise InferfileParseError(
            f"{what}: unexpected fields {unknown}; allowed fields: {sorted(allowed)}",
            location=_location(node, document),
        )


def _scalar(node: yaml.Node, key: str, document: str) -> object:
    if not isinstance(node, yaml.ScalarNode):
        raise InferfileParseError(
            f"{key} must be a scalar value", location=_location(node, document)
        )
    return SafeConstructor().construct_object(node, deep=True)


def _required_str(
    items: dict[str, yaml.Node],
    key: str,
    what: str,
    node: yaml.Node,
    document: str,
) -> str:
    value_node = items.get(key)
    if value_node is None or _is_null(value_node):
        raise InferfileParseError(
            f"{what}: missing required field {key!r}", location=_location(node, document)
        )
    value = _scalar(value_node, key, document)
    if not isinstance(value, str):
        raise InferfileParseError(
            f"{key} must be a string", location=_location(value_node, document)
        )
    if not value.strip():
        raise InferfileParseError(
            f"{key} cannot be empty", location=_location(value_node, document)
        )
    return value.strip()


def _resolve_path(raw: str, base_dir: Path) -> Path:
    candidate = Path(raw).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(str(candidate)))


__all__ = [
    "ConfigLoadError",
    "InferfileParseError",
    "InferfileReferenceError",
    "check_file_references",
    "load_inferfile",
    "parse_inferfile",
    "validate_inferfile",
]
