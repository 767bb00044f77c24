"""URL helpers for instance resources and their web console pages."""

from __future__ import annotations

import re
from typing import Any, Mapping
from urllib.parse import quote

INSTANCES_PATH = "/services/instances/"

_NON_SLUG = re.compile(r"[^a-zA-Z0-9-]")


def instance_url(endpoint_url: str, instance_id: str) -> str:
    return f"{endpoint_url}{INSTANCES_PATH}{quote(instance_id, safe='')}"


def resource_id(resource_url: str | None) -> str | None:
    """Last path segment of a resource URL."""
    if resource_url is None:
        return None
    return resource_url.rsplit("/", 1)[-1]


def page_url(endpoint_url: str, resource_url: str) -> str | None:
    """Console page for an instance resource URL, or None for other resources."""
    if not resource_url.startswith(f"{endpoint_url}{INSTANCES_PATH}"):
        return None
    instance_id = resource_id(resource_url)
    if not instance_id:
        return None
    return f"{endpoint_url}/#/instances/{instance_id}/i"


def instance_page_url(endpoint_url: str, resource: Mapping[str, Any]) -> str | None:
    """Console page for an instance document, slugging its name."""
    if not resource.get("uri", "").startswith(INSTANCES_PATH):
        return None
    slug = _NON_SLUG.sub("-", resource.get("name", ""))
    return f"{endpoint_url}/#/instances/{resource['id']}/{slug}"
