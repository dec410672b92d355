"""Remote executor.

This package owns the single session to the domain controller (a WinRM
shell or an LDAP connection) and runs the operation batch inside it.

Public API:
    - run(), execute(), open_session()
    - Credential
"""

from .credentials import Credential
from .executor import execute, open_session, run

__all__ = ["Credential", "execute", "open_session", "run"]
