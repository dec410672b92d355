from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Credential:
    username: str
    password: str = field(default="", repr=False)


def guess_netbios(domain_suffix: str) -> str:
    d = (domain_suffix or "").strip()
    if not d:
        return ""
    return d.split(".")[0].upper()


def winrm_username(username: str, domain_suffix: str) -> str:
    """Account name for NTLM: DOMAIN\\user, UPN, or a bare name qualified with the guessed NetBIOS domain."""
    u = (username or "").strip()
    if not u:
        return ""
    if "\\" in u or "@" in u:
        return u
    netbios = guess_netbios(domain_suffix)
    return f"{netbios}\\{u}" if netbios else u


def bind_principal(username: str, domain_suffix: str) -> str:
    """Account name for an LDAP simple bind: UPN, DOMAIN\\user, or user@domain."""
    u = (username or "").strip()
    d = (domain_suffix or "").strip().strip(".")
    if not u:
        return ""
    if "@" in u or "\\" in u:
        return u
    return f"{u}@{d}" if d else u
