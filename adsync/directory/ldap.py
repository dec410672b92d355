from __future__ import annotations

import logging
import ssl
from contextlib import contextmanager
from typing import Any, Iterator

from ldap3 import ALL, BASE, LEVEL, MODIFY_ADD, SUBTREE, Connection, Server, Tls
from ldap3.core.exceptions import LDAPCommunicationError, LDAPException
from ldap3.utils.dn import escape_rdn

from ..desired.models import GroupType
from ..env_settings import EnvSettings
from ..errors import ConnectivityError, DirectoryOperationError
from ..utils.dn import dn_first_component_value, escape_ldap_filter_value
from .base import DirectoryService

log = logging.getLogger(__name__)

# Result descriptions that carry a clearer meaning for an operator.
_RESULT_HINTS = {
    "insufficientAccessRights": "insufficient rights to create objects in the target container",
    "entryAlreadyExists": "an object with this name already exists in the container",
    "constraintViolation": "sAMAccountName is already used by another object in the domain",
    "noSuchObject": "target container not found",
    "unwillingToPerform": "server refused the request",
}


def _result_message(conn: Connection) -> str:
    res = dict(conn.result or {})
    desc = res.get("description", "") or "unknown error"
    hint = _RESULT_HINTS.get(desc)
    msg = res.get("message", "")
    out = f"{desc} ({hint})" if hint else desc
    if msg:
        out += f": {msg}"
    return out


@contextmanager
def ldap_session(host: str, principal: str, password: str, settings: EnvSettings) -> Iterator[Connection]:
    """Open, optionally StartTLS, and bind one connection; always unbind."""
    tls = Tls(validate=ssl.CERT_REQUIRED if settings.ldap_tls_validate else ssl.CERT_NONE)
    server = Server(
        host=host,
        port=settings.ldap_port,
        use_ssl=settings.ldap_use_ssl,
        get_info=ALL,
        tls=tls,
        connect_timeout=float(settings.connect_timeout_s),
    )
    conn = Connection(server, user=principal, password=password, auto_bind=False, raise_exceptions=False)
    try:
        conn.open()
        if settings.ldap_starttls:
            conn.start_tls()
        if not conn.bind():
            raise ConnectivityError(f"{host}: bind failed: {_result_message(conn)}")
    except LDAPException as e:
        try:
            conn.unbind()
        except LDAPException:
            pass
        raise ConnectivityError(f"{host}: {e}") from e
    except ConnectivityError:
        try:
            conn.unbind()
        except LDAPException:
            pass
        raise

    log.info("LDAP connection bound to %s:%s as %s", host, settings.ldap_port, principal)
    try:
        yield conn
    finally:
        try:
            conn.unbind()
            log.info("LDAP connection to %s closed", host)
        except LDAPException as e:
            log.warning("LDAP unbind from %s failed: %s", host, e)


class LdapDirectory(DirectoryService):
    def __init__(self, conn: Connection, base_dn: str = "", domain: str = "") -> None:
        self.conn = conn
        self.base_dn = base_dn
        self.domain = (domain or "").strip().strip(".")

    def _call(self, what: str, fn, *args, **kwargs) -> bool:
        try:
            return bool(fn(*args, **kwargs))
        except LDAPCommunicationError as e:
            raise ConnectivityError(f"{what}: {e}") from e
        except LDAPException as e:
            raise DirectoryOperationError(f"{what}: {e}") from e

    def _search_base(self) -> str:
        if not self.base_dn:
            self.base_dn = self.root_dn()
        return self.base_dn

    def _find(
        self,
        object_class: str,
        attr: str,
        name: str,
        attributes: list[str] | None = None,
        search_base: str = "",
        scope=SUBTREE,
    ) -> dict | None:
        flt = f"(&(objectClass={object_class})({attr}={escape_ldap_filter_value(name)}))"
        self._call(
            f"search {flt}",
            self.conn.search,
            search_base=search_base or self._search_base(),
            search_filter=flt,
            search_scope=scope,
            attributes=attributes or ["objectClass"],
            size_limit=2,
        )
        for e in self.conn.response or []:
            if e.get("type", "searchResEntry") == "searchResEntry" and e.get("dn"):
                return e
        return None

    def _add(self, dn: str, attrs: dict[str, Any], what: str) -> str:
        if not self._call(what, self.conn.add, dn, attributes=attrs):
            raise DirectoryOperationError(f"{what}: {_result_message(self.conn)}")
        return dn

    def root_dn(self) -> str:
        info = self.conn.server.info
        other = getattr(info, "other", None) or {}
        values = other.get("defaultNamingContext") or []
        if not values:
            raise DirectoryOperationError("RootDSE has no defaultNamingContext")
        return str(values[0])

    def ou_exists(self, name: str, parent_dn: str = "") -> bool:
        scope = LEVEL if parent_dn else SUBTREE
        return self._find("organizationalUnit", "ou", name, search_base=parent_dn, scope=scope) is not None

    def create_ou(self, name: str, parent_dn: str) -> str:
        dn = f"OU={escape_rdn(name)},{parent_dn}"
        return self._add(dn, {"objectClass": ["top", "organizationalUnit"], "ou": name}, f"create OU {name}")

    def group_exists(self, name: str) -> bool:
        return self._find("group", "sAMAccountName", name) is not None

    def create_group(self, name: str, ou_path: str, group_type: GroupType) -> str:
        attrs: dict[str, Any] = {
            "objectClass": ["top", "group"],
            "sAMAccountName": name,
            "cn": name,
            "groupType": str(group_type.group_type_bits),
        }
        return self._add(f"CN={escape_rdn(name)},{ou_path}", attrs, f"create group {name}")

    def user_exists(self, name: str) -> bool:
        return self._find("user", "sAMAccountName", name) is not None

    def create_user(self, name: str, ou_path: str) -> str:
        attrs: dict[str, Any] = {
            "objectClass": ["top", "person", "organizationalPerson", "user"],
            "sAMAccountName": name,
            "displayName": name,
        }
        if self.domain:
            attrs["userPrincipalName"] = f"{name}@{self.domain}"
        # No password: AD creates the account disabled.
        return self._add(f"CN={escape_rdn(name)},{ou_path}", attrs, f"create user {name}")

    def _member_name(self, member_dn: str) -> str:
        self._call(
            f"read {member_dn}",
            self.conn.search,
            search_base=member_dn,
            search_filter="(objectClass=*)",
            search_scope=BASE,
            attributes=["sAMAccountName"],
        )
        for e in self.conn.response or []:
            sam = (e.get("attributes") or {}).get("sAMAccountName")
            if isinstance(sam, list):
                sam = sam[0] if sam else ""
            if sam:
                return str(sam)
        return dn_first_component_value(member_dn)

    def get_group_members(self, name: str) -> set[str]:
        group = self._find("group", "sAMAccountName", name, attributes=["member"])
        if group is None:
            return set()
        members = (group.get("attributes") or {}).get("member") or []
        if isinstance(members, str):
            members = [members]
        return {self._member_name(str(dn)) for dn in members}

    def add_group_member(self, group: str, user: str) -> None:
        what = f"add {user} to {group}"
        g = self._find("group", "sAMAccountName", group)
        if g is None:
            raise DirectoryOperationError(f"{what}: group not found")
        u = self._find("user", "sAMAccountName", user)
        if u is None:
            raise DirectoryOperationError(f"{what}: user not found")

        ok = self._call(what, self.conn.modify, g["dn"], {"member": [(MODIFY_ADD, [u["dn"]])]})
        if not ok:
            desc = str((self.conn.result or {}).get("description", ""))
            if desc.lower() == "attributeorvalueexists":
                return
            raise DirectoryOperationError(f"{what}: {_result_message(self.conn)}")
