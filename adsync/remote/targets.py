from __future__ import annotations

import logging

from ..ad_utils import build_dc_fqdn
from ..utils.net import looks_like_ip, resolve_hostname_with_dns

log = logging.getLogger(__name__)


def resolve_target(dc: str, domain: str, dns_server: str = "") -> str:
    """Host to connect to for the domain controller ``dc``.

    Short names are qualified with the domain. With a DNS server configured
    the name is resolved there; on failure the name is used as is.
    """
    host = build_dc_fqdn(dc, domain)
    if not host or not dns_server or looks_like_ip(host):
        return host
    ip = resolve_hostname_with_dns(host, dns_server)
    if ip:
        log.debug("Resolved %s -> %s via %s", host, ip, dns_server)
        return ip
    return host
