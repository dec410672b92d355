from __future__ import annotations

import ipaddress
import logging

log = logging.getLogger(__name__)


def looks_like_ip(s: str) -> bool:
    try:
        ipaddress.ip_address((s or "").strip())
        return True
    except ValueError:
        return False


def resolve_hostname_with_dns(hostname: str, dns_server: str, timeout_s: float = 5.0) -> str | None:
    """Resolve hostname using a specific DNS server."""
    if not dns_server:
        return None

    import dns.exception
    import dns.resolver

    resolver = dns.resolver.Resolver(configure=False)
    resolver.nameservers = [dns_server]
    resolver.timeout = timeout_s
    resolver.lifetime = timeout_s

    try:
        answers = resolver.resolve(hostname, "A")
        if answers:
            return str(answers[0])
    except dns.resolver.NXDOMAIN:
        log.warning("DNS: '%s' not found on %s", hostname, dns_server)
    except dns.resolver.NoAnswer:
        log.warning("DNS: %s returned no A record for '%s'", dns_server, hostname)
    except dns.resolver.NoNameservers:
        log.warning("DNS: server %s failed to answer for '%s'", dns_server, hostname)
    except dns.exception.Timeout:
        log.warning("DNS: timeout asking %s for '%s'", dns_server, hostname)
    return None
