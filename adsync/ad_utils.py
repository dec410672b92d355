from __future__ import annotations

import ipaddress


def domain_to_base_dn(domain: str) -> str:
    domain = (domain or "").strip().strip(".")
    if not domain or "." not in domain:
        return ""
    parts = [p for p in domain.split(".") if p]
    return ",".join([f"DC={p}" for p in parts])


def build_dc_fqdn(dc: str, domain: str) -> str:
    """Host to connect to: IPs and FQDNs as given, short names qualified with the domain."""
    dc = (dc or "").strip()
    domain = (domain or "").strip().strip(".")
    if not dc:
        return domain

    try:
        ipaddress.ip_address(dc)
        return dc
    except ValueError:
        if "." in dc:
            return dc
        return f"{dc}.{domain}" if domain else dc


def ou_dn(ou_name: str, base_dn: str) -> str:
    """DN of a top-level OU under the domain root."""
    from ldap3.utils.dn import escape_rdn

    return f"OU={escape_rdn(ou_name)},{base_dn}"
