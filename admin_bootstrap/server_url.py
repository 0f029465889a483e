"""Work out the URL an operator should open to log in as the new admin."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from .models import NODE_EXTERNAL_IP, NODE_INTERNAL_IP, Node, ServerUrlSetting

log = logging.getLogger(__name__)

SERVER_URL_TEMPLATE = "https://{address}:8443"


def node_address(nodes: Sequence[Node]) -> Optional[str]:
    """Pick an address from the first node.

    The first ExternalIP wins outright. Otherwise the last InternalIP in the
    list is used, since the scan only stops early on an external match.
    """
    if not nodes:
        return None
    chosen = None
    for address in nodes[0].addresses:
        if address.type == NODE_EXTERNAL_IP:
            return address.address
        if address.type == NODE_INTERNAL_IP:
            chosen = address.address
    return chosen


def guess_from_nodes(nodes: Sequence[Node]) -> str:
    address = node_address(nodes)
    if address is None:
        # Reported as-is so the operator sees the port and fills in the host.
        return SERVER_URL_TEMPLATE
    return SERVER_URL_TEMPLATE.format(address=address)


def resolve_server_url(setting: ServerUrlSetting, nodes: Sequence[Node]) -> str:
    """Setting value, then setting default, then a guess from node addresses."""
    if setting.value:
        return setting.value
    if setting.default:
        return setting.default
    url = guess_from_nodes(nodes)
    log.debug("server-url setting is empty; guessed %s from node addresses", url)
    return url
