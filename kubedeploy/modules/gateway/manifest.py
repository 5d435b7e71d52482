"""
Deployment manifest parsing.

Request bodies arrive as JSON or YAML. JSON is a subset of YAML, so one
safe YAML load handles both.
"""

from typing import Any, Dict, List, Mapping

import yaml


class ManifestError(ValueError):
    """Request body is not a usable Deployment manifest."""


def parse_deployment_manifest(data: bytes) -> Dict[str, Any]:
    """
    Parse a Deployment manifest from a JSON or YAML document.

    Args:
        data: Raw request body

    Returns:
        Manifest mapping

    Raises:
        ManifestError: If the body is empty, not a single mapping, declares
            another kind, or has malformed metadata
    """
    if not data or not data.strip():
        raise ManifestError("request body is empty")

    try:
        manifest = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise ManifestError(f"invalid JSON/YAML document: {e}") from e

    if not isinstance(manifest, dict):
        raise ManifestError("manifest must be a mapping")

    kind = manifest.get("kind")
    if kind is not None and kind != "Deployment":
        raise ManifestError(f"expected kind Deployment, got {kind}")

    metadata = manifest.get("metadata")
    if metadata is None:
        manifest["metadata"] = {}
    elif not isinstance(metadata, dict):
        raise ManifestError("metadata must be a mapping")

    spec = manifest.get("spec")
    if spec is not None and not isinstance(spec, dict):
        raise ManifestError("spec must be a mapping")

    return manifest


def label_selector_from(selector: Mapping[str, Any]) -> str:
    """
    Render a LabelSelector object in the string form list calls accept.

    Example:
        >>> label_selector_from({"matchLabels": {"app": "web"},
        ...     "matchExpressions": [{"key": "tier", "operator": "In", "values": ["a", "b"]}]})
        'app=web,tier in (a,b)'
    """
    parts: List[str] = []
    for key, value in (selector.get("matchLabels") or {}).items():
        parts.append(f"{key}={value}")

    for expr in selector.get("matchExpressions") or []:
        key = expr.get("key")
        operator = expr.get("operator")
        values = ",".join(expr.get("values") or [])
        if operator == "In":
            parts.append(f"{key} in ({values})")
        elif operator == "NotIn":
            parts.append(f"{key} notin ({values})")
        elif operator == "Exists":
            parts.append(str(key))
        elif operator == "DoesNotExist":
            parts.append(f"!{key}")
        else:
            raise ValueError(f"Unsupported selector operator: {operator}")

    return ",".join(parts)
