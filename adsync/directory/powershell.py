"""Directory operations through the ActiveDirectory PowerShell module.

Scripts run in the remote shell of the domain controller. Each script
prints a single result line; failures inside the script are reported as
``ADSYNC_ERROR: <message>`` with exit code 1.
"""
from __future__ import annotations

import logging
from typing import Protocol

from ..desired.models import GroupType
from ..errors import DirectoryOperationError
from ..utils.dn import escape_ldap_filter_value
from .base import DirectoryService

log = logging.getLogger(__name__)

ERROR_MARKER = "ADSYNC_ERROR:"
NOT_FOUND_MARKER = "ADSYNC_NOT_FOUND"

_PRELUDE = r"""
[Console]::OutputEncoding = [System.Text.Encoding]::UTF8
$OutputEncoding = [System.Text.Encoding]::UTF8
$ErrorActionPreference = 'Stop'
$ProgressPreference = 'SilentlyContinue'
try {
  Import-Module ActiveDirectory
"""

_EPILOGUE = r"""
} catch {
  Write-Output ("ADSYNC_ERROR: " + $_.Exception.Message)
  exit 1
}
"""


class Shell(Protocol):
    def run_ps(self, script: str): ...


def ps_quote(value: str) -> str:
    """Single-quoted PowerShell string literal."""
    return "'" + (value or "").replace("'", "''") + "'"


def ldap_filter(attr: str, value: str) -> str:
    return ps_quote(f"({attr}={escape_ldap_filter_value(value)})")


class PowerShellDirectory(DirectoryService):
    def __init__(self, shell: Shell) -> None:
        self.shell = shell

    def _run(self, body: str, what: str) -> list[str]:
        r = self.shell.run_ps(_PRELUDE + body + _EPILOGUE)
        lines = [x.strip() for x in (r.std_out or "").splitlines() if x.strip()]
        errors = [x[len(ERROR_MARKER):].strip() for x in lines if x.startswith(ERROR_MARKER)]
        if errors or r.status_code != 0:
            msg = errors[0] if errors else ((r.std_err or "").strip()[:300] or f"exit code {r.status_code}")
            raise DirectoryOperationError(f"{what}: {msg}")
        return lines

    def _exists(self, cmdlet: str, attr: str, name: str, what: str, search_base: str = "") -> bool:
        scope = f" -SearchBase {ps_quote(search_base)} -SearchScope OneLevel" if search_base else ""
        lines = self._run(
            f"  $r = {cmdlet} -LDAPFilter {ldap_filter(attr, name)}{scope}\n"
            "  if ($r) { Write-Output 'True' } else { Write-Output 'False' }\n",
            what,
        )
        return bool(lines) and lines[-1] == "True"

    def root_dn(self) -> str:
        lines = self._run("  Write-Output (Get-ADDomain).DistinguishedName\n", "Get-ADDomain")
        if not lines:
            raise DirectoryOperationError("Get-ADDomain: empty answer")
        return lines[-1]

    def ou_exists(self, name: str, parent_dn: str = "") -> bool:
        return self._exists("Get-ADOrganizationalUnit", "ou", name, f"lookup OU {name}", search_base=parent_dn)

    def create_ou(self, name: str, parent_dn: str) -> str:
        lines = self._run(
            f"  $o = New-ADOrganizationalUnit -Name {ps_quote(name)} -Path {ps_quote(parent_dn)} -PassThru\n"
            "  Write-Output $o.DistinguishedName\n",
            f"create OU {name}",
        )
        return lines[-1] if lines else ""

    def group_exists(self, name: str) -> bool:
        return self._exists("Get-ADGroup", "sAMAccountName", name, f"lookup group {name}")

    def create_group(self, name: str, ou_path: str, group_type: GroupType) -> str:
        lines = self._run(
            f"  $g = New-ADGroup -Name {ps_quote(name)} -SamAccountName {ps_quote(name)}"
            f" -GroupCategory {group_type.category.value} -GroupScope {group_type.scope.value}"
            f" -Path {ps_quote(ou_path)} -PassThru\n"
            "  Write-Output $g.DistinguishedName\n",
            f"create group {name}",
        )
        return lines[-1] if lines else ""

    def user_exists(self, name: str) -> bool:
        return self._exists("Get-ADUser", "sAMAccountName", name, f"lookup user {name}")

    def create_user(self, name: str, ou_path: str) -> str:
        # No password: AD creates the account disabled.
        lines = self._run(
            f"  $u = New-ADUser -Name {ps_quote(name)} -SamAccountName {ps_quote(name)}"
            f" -Path {ps_quote(ou_path)} -PassThru\n"
            "  Write-Output $u.DistinguishedName\n",
            f"create user {name}",
        )
        return lines[-1] if lines else ""

    def get_group_members(self, name: str) -> set[str]:
        lines = self._run(
            f"  $g = Get-ADGroup -LDAPFilter {ldap_filter('sAMAccountName', name)}\n"
            f"  if (-not $g) {{ Write-Output '{NOT_FOUND_MARKER}'; exit 0 }}\n"
            "  Get-ADGroupMember -Identity $g | ForEach-Object { $_.SamAccountName }\n",
            f"members of {name}",
        )
        if lines and lines[0] == NOT_FOUND_MARKER:
            return set()
        return set(lines)

    def add_group_member(self, group: str, user: str) -> None:
        self._run(
            f"  Add-ADGroupMember -Identity {ps_quote(group)} -Members {ps_quote(user)}\n",
            f"add {user} to {group}",
        )
