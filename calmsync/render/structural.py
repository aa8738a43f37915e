"""Structural (CALM JSON / YAML) serialization and its inverse."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import ValidationError

from calmsync.exceptions import StructuralDecodeError
from calmsync.schema import Architecture

if TYPE_CHECKING:
    from pathlib import Path


def to_dict(arch: Architecture) -> dict[str, Any]:
    return arch.model_dump(mode="json", by_alias=True, exclude_none=True)


def to_json(arch: Architecture) -> str:
    """Serialize to CALM JSON (4-space indent, unset optionals omitted)."""
    return json.dumps(to_dict(arch), indent=4, ensure_ascii=False) + "\n"


def to_yaml(arch: Architecture) -> str:
    """Serialize to YAML with CALM key order preserved."""
    return yaml.dump(to_dict(arch), default_flow_style=False, sort_keys=False, width=120, allow_unicode=True)


def load_structural(text: str) -> Architecture:
    """Decode CALM JSON.  Any failure raises ``StructuralDecodeError``."""
    try:
        return Architecture.model_validate_json(text)
    except ValidationError as exc:
        raise StructuralDecodeError(str(exc)) from exc


def load_yaml(text: str) -> Architecture:
    """Decode the YAML rendition of a CALM document."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise StructuralDecodeError(str(exc)) from exc
    if not isinstance(data, dict):
        raise StructuralDecodeError(f"expected a mapping at the document root, got {type(data).__name__}")
    try:
        return Architecture.model_validate(data)
    except ValidationError as exc:
        raise StructuralDecodeError(str(exc)) from exc


def write_json(arch: Architecture, output_path: Path) -> None:
    """Write CALM JSON to disk."""
    output_path.write_text(to_json(arch), encoding="utf-8")
