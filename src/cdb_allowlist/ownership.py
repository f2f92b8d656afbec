"""Description tags marking the ``ipRestrictions`` entries we manage."""

from __future__ import annotations

from typing import Optional

OWNERSHIP_PREFIX = "K8S-CDB-Operator"
SEPARATOR = "_"


def encode(node_name: str, resource_id: str, node_id: str) -> str:
    """Return the description of an entry owned for ``node_name``.

    The node id is part of the tag, so a re-created node (new UID) never
    matches its predecessor's entry.
    """

    return SEPARATOR.join((OWNERSHIP_PREFIX, node_name, resource_id, node_id))


def is_owned(description: Optional[str]) -> bool:
    """Return ``True`` if ``description`` was produced by :func:`encode`."""

    if not description:
        return False
    return description.startswith(OWNERSHIP_PREFIX + SEPARATOR)
