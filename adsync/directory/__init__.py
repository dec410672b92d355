"""Directory service boundary.

Public API:
    - DirectoryService (interface the reconciler talks to)
    - PowerShellDirectory (ActiveDirectory cmdlets over a WinRM shell)
    - LdapDirectory, ldap_session (same operations over one LDAP connection)
"""

from .base import DirectoryService
from .ldap import LdapDirectory, ldap_session
from .powershell import PowerShellDirectory

__all__ = ["DirectoryService", "LdapDirectory", "PowerShellDirectory", "ldap_session"]
