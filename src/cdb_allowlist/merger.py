"""Combine freshly computed owned entries with the entries we do not own."""

from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Set, Tuple

from .addresses import normalize_address
from .models import OwnedAddress, Owner, RestrictionEntry
from .ownership import is_owned

LOG = logging.getLogger(__name__)


def _comparable(ip: str) -> str:
    try:
        return normalize_address(ip)
    except ValueError:
        return ip


def partition(
    entries: Iterable[RestrictionEntry],
) -> Tuple[List[RestrictionEntry], List[RestrictionEntry]]:
    """Split ``entries`` into ``(foreign, owned)`` keeping the remote order."""

    foreign: List[RestrictionEntry] = []
    owned: List[RestrictionEntry] = []
    for entry in entries:
        (owned if is_owned(entry.description) else foreign).append(entry)
    return foreign, owned


def merge(
    owned: Mapping[str, Owner],
    current: Iterable[RestrictionEntry],
    resource_id: str,
) -> List[RestrictionEntry]:
    """Compute the allowlist to apply.

    Foreign entries are kept verbatim. Every previously owned entry is
    dropped and one entry per address of ``owned`` is emitted with a freshly
    encoded description, so removed nodes disappear and tags stay canonical.
    An address already covered by a foreign entry is left to that entry.
    """

    foreign, previous = partition(current)
    covered: Set[str] = {_comparable(entry.ip) for entry in foreign}

    desired = list(foreign)
    for address in sorted(owned):
        if _comparable(address) in covered:
            LOG.debug("address %s is already allowlisted by a foreign entry", address)
            continue
        desired.append(OwnedAddress(address, owned[address], resource_id).to_entry())
        covered.add(_comparable(address))

    LOG.debug(
        "merged %d foreign and %d owned entries (previously %d owned)",
        len(foreign),
        len(desired) - len(foreign),
        len(previous),
    )
    return desired
