"""
Validation Module - Black Box Interface

Purpose: Check namespace and resource names before any cluster call
Interface: validate_namespace(), validate_resource_name()
Hidden: Kubernetes naming grammar (RFC 1123 labels and subdomains)

Pure functions: no logging, no side effects.
"""

import re
from typing import Any

NAMESPACE_MAX_LENGTH = 63
RESOURCE_NAME_MAX_LENGTH = 253

_LABEL = r"[a-z0-9]([-a-z0-9]*[a-z0-9])?"
_NAMESPACE_PATTERN = re.compile(_LABEL)
_RESOURCE_NAME_PATTERN = re.compile(rf"{_LABEL}(\.{_LABEL})*")


def validate_namespace(namespace: Any) -> bool:
    """
    Validate namespace format.

    Rules (RFC 1123 label):
    - Lowercase alphanumeric and hyphens only
    - Must start and end with alphanumeric
    - Max 63 characters
    """
    if not isinstance(namespace, str) or not namespace:
        return False
    if len(namespace) > NAMESPACE_MAX_LENGTH:
        return False
    return _NAMESPACE_PATTERN.fullmatch(namespace) is not None


def validate_resource_name(name: Any) -> bool:
    """
    Validate resource name format.

    Rules (RFC 1123 subdomain):
    - Dot separated labels, each lowercase alphanumeric and hyphens
    - Each label starts and ends with alphanumeric
    - Max 253 characters
    """
    if not isinstance(name, str) or not name:
        return False
    if len(name) > RESOURCE_NAME_MAX_LENGTH:
        return False
    return _RESOURCE_NAME_PATTERN.fullmatch(name) is not None


__all__ = ["validate_namespace", "validate_resource_name"]
