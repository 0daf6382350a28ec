"""Manifest parser and serializer for bundle configuration and dependencies."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from scanedeps.config import AuxTree, BundleConfig
from scanedeps.errors import ManifestError
from scanedeps.models import DependencyDescriptor
from scanedeps.registry import DEFAULT_REGISTRY, Registry

MANIFEST_FILENAME = "scanedeps.json"
MANIFEST_VERSION = 1

_TUPLE_FIELDS = ("architectures", "foreign_prefixes")
_STR_FIELDS = (
    "self_token",
    "root_rewrite_base",
    "plugin_rewrite_base",
    "plugin_owner",
    "plugin_subdir",
    "plugin_pattern",
    "url_template",
)
_OPTIONAL_STR_FIELDS = ("aux_arch", "auth_token")
_OPTIONAL_SECONDS_FIELDS = ("tool_timeout", "fetch_timeout")
_INT_FIELDS = ("fetch_workers",)


@dataclass(frozen=True, slots=True)
class Manifest:
    config: BundleConfig
    registry: Registry


def default_manifest() -> Manifest:
    return Manifest(config=BundleConfig(), registry=DEFAULT_REGISTRY)


def serialize_manifest(manifest: Manifest) -> str:
    config_payload: dict[str, Any] = {}
    for item in fields(BundleConfig):
        value = getattr(manifest.config, item.name)
        if item.name == "aux_trees":
            value = [{"source": tree.source, "destination": tree.destination} for tree in value]
        elif isinstance(value, tuple):
            value = list(value)
        config_payload[item.name] = value
    payload = {
        "version": MANIFEST_VERSION,
        "config": config_payload,
        "dependencies": [
            {
                "name": descriptor.name,
                "version": descriptor.version,
                "lib_name": descriptor.lib_name,
                "target_name": descriptor.target_name,
                "fingerprints": dict(descriptor.fingerprints),
            }
            for descriptor in manifest.registry
        ],
    }
    return json.dumps(payload, indent=2) + "\n"


def parse_manifest(raw: str) -> Manifest:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ManifestError("Invalid manifest JSON.", hint=str(exc)) from exc

    if not isinstance(payload, dict):
        raise ManifestError("Invalid manifest payload type.")

    version = payload.get("version")
    if version != MANIFEST_VERSION:
        raise ManifestError(
            "Unsupported manifest version.",
            context={"expected": str(MANIFEST_VERSION), "actual": str(version)},
        )
    config_raw = payload.get("config", {})
    if not isinstance(config_raw, dict):
        raise ManifestError("Invalid manifest `config` value.")
    dependencies_raw = payload.get("dependencies")
    if not isinstance(dependencies_raw, list):
        raise ManifestError("Invalid manifest `dependencies` value.")

    return Manifest(
        config=_parse_config(config_raw),
        registry=Registry(descriptors=tuple(_parse_descriptor(item) for item in dependencies_raw)),
    )


def read_manifest(path: str | Path) -> Manifest:
    manifest_path = Path(path)
    try:
        raw = manifest_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ManifestError(
            "Manifest does not exist.",
            hint="Run `scanedeps init` in the bundle root.",
            context={"path": str(manifest_path)},
        ) from exc
    return parse_manifest(raw)


def write_manifest(manifest: Manifest, path: str | Path) -> Path:
    manifest_path = Path(path)
    manifest_path.parent.mkdir(parents=True, exist_ok=True)
    manifest_path.write_text(serialize_manifest(manifest), encoding="utf-8")
    return manifest_path


def _parse_config(payload: dict[str, Any]) -> BundleConfig:
    known = {item.name for item in fields(BundleConfig)}
    unknown = sorted(set(payload) - known)
    if unknown:
        raise ManifestError(
            "Unknown manifest config keys.",
            context={"keys": ",".join(unknown)},
        )
    values: dict[str, Any] = {}
    for key, value in payload.items():
        if key in _TUPLE_FIELDS:
            if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
                raise ManifestError(f"Invalid manifest config `{key}` value.")
            values[key] = tuple(value)
        elif key == "aux_trees":
            values[key] = tuple(_parse_aux_tree(item) for item in _required_list(value, key))
        else:
            values[key] = _parse_scalar(key, value)
    return BundleConfig(**values)


def _parse_scalar(key: str, value: Any) -> Any:
    if key in _STR_FIELDS:
        valid = isinstance(value, str)
    elif key in _OPTIONAL_STR_FIELDS:
        valid = value is None or isinstance(value, str)
    elif key in _OPTIONAL_SECONDS_FIELDS:
        valid = value is None or (isinstance(value, int | float) and not isinstance(value, bool))
        if valid and value is not None:
            value = float(value)
    elif key in _INT_FIELDS:
        valid = isinstance(value, int) and not isinstance(value, bool)
    else:
        valid = True
    if not valid:
        raise ManifestError(
            f"Invalid manifest config `{key}` value.",
            context={"key": key, "value": repr(value)},
        )
    return value


def _parse_aux_tree(item: Any) -> AuxTree:
    if not isinstance(item, dict):
        raise ManifestError("Invalid aux tree entry in manifest.")
    return AuxTree(
        source=_required_str(item, "source"),
        destination=_required_str(item, "destination"),
    )


def _parse_descriptor(item: Any) -> DependencyDescriptor:
    if not isinstance(item, dict):
        raise ManifestError("Invalid dependency entry in manifest.")
    fingerprints = item.get("fingerprints")
    if not isinstance(fingerprints, dict) or not all(
        isinstance(arch, str) and isinstance(sha256, str) for arch, sha256 in fingerprints.items()
    ):
        raise ManifestError(
            "Invalid manifest `fingerprints` value.",
            context={"dependency": str(item.get("name", ""))},
        )
    return DependencyDescriptor(
        name=_required_str(item, "name"),
        version=_required_str(item, "version"),
        lib_name=_required_str(item, "lib_name"),
        target_name=_required_str(item, "target_name"),
        fingerprints=dict(fingerprints),
    )


def _required_str(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise ManifestError(f"Invalid manifest `{key}` value.")
    return value


def _required_list(value: Any, key: str) -> list[Any]:
    if not isinstance(value, list):
        raise ManifestError(f"Invalid manifest config `{key}` value.")
    return value


__all__ = [
    "MANIFEST_FILENAME",
    "Manifest",
    "default_manifest",
    "parse_manifest",
    "read_manifest",
    "serialize_manifest",
    "write_manifest",
]
