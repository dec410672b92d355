"""One WinRM shell on the domain controller.

Every directory operation runs as a separate PowerShell command inside the
same remote shell; the shell is closed when the session ends, whatever
happened in between.
"""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass

import requests
import winrm
from winrm.exceptions import WinRMError, WinRMOperationTimeoutError, WinRMTransportError

from ..env_settings import EnvSettings
from ..errors import ConnectivityError
from ..utils.tcp_probe import tcp_probe
from .credentials import Credential, winrm_username

log = logging.getLogger(__name__)

WINRM_HTTP_PORT = 5985
WINRM_HTTPS_PORT = 5986

_TRANSPORT_ERRORS = (
    WinRMError,
    WinRMTransportError,
    WinRMOperationTimeoutError,
    requests.exceptions.RequestException,
)


def decode_winrm_output(raw: bytes) -> str:
    """Decode PowerShell output.

    Output is UTF-8 when the script sets OutputEncoding; older hosts still
    answer in the OEM or ANSI code page. Try UTF-8, then cp866, then cp1251.
    """
    if not raw:
        return ""
    if raw.startswith(b"\xef\xbb\xbf"):
        raw = raw[3:]
    for enc in ("utf-8", "cp866", "cp1251"):
        try:
            return raw.decode(enc)
        except UnicodeDecodeError:
            continue
    return raw.decode("utf-8", errors="replace")


@dataclass
class PSResult:
    status_code: int
    std_out: str
    std_err: str


def winrm_endpoints(host: str, timeout_s: float) -> list[str]:
    endpoints: list[str] = []
    # Quick probes to avoid long hangs
    if tcp_probe(host, WINRM_HTTP_PORT, timeout_s=timeout_s):
        endpoints.append(f"http://{host}:{WINRM_HTTP_PORT}/wsman")
    if tcp_probe(host, WINRM_HTTPS_PORT, timeout_s=timeout_s):
        endpoints.append(f"https://{host}:{WINRM_HTTPS_PORT}/wsman")
    return endpoints


class WinRMShell:
    """Context manager around a single remote shell."""

    def __init__(self, host: str, credential: Credential | None, settings: EnvSettings) -> None:
        self.host = host
        self.credential = credential
        self.settings = settings
        self.endpoint = ""
        self._protocol: winrm.Protocol | None = None
        self._shell_id: str | None = None

    def _protocol_for(self, endpoint: str) -> winrm.Protocol:
        s = self.settings
        cert_validation = "ignore" if (s.winrm_insecure and endpoint.startswith("https://")) else "validate"
        kwargs = dict(
            server_cert_validation=cert_validation,
            read_timeout_sec=s.winrm_read_timeout_s,
            operation_timeout_sec=s.winrm_operation_timeout_s,
        )
        if self.credential is None:
            # Current Kerberos ticket.
            return winrm.Protocol(endpoint, transport="kerberos", **kwargs)
        return winrm.Protocol(
            endpoint,
            transport=s.winrm_transport,
            username=winrm_username(self.credential.username, s.domain),
            password=self.credential.password,
            **kwargs,
        )

    def open(self) -> "WinRMShell":
        endpoints = winrm_endpoints(self.host, self.settings.connect_timeout_s)
        if not endpoints:
            raise ConnectivityError(f"{self.host}: WinRM ports {WINRM_HTTP_PORT}/{WINRM_HTTPS_PORT} unreachable")

        last_err: Exception | None = None
        for ep in endpoints:
            try:
                protocol = self._protocol_for(ep)
                shell_id = protocol.open_shell(codepage=65001)
            except _TRANSPORT_ERRORS as e:
                log.warning("WinRM %s: %s", ep, e)
                last_err = e
                continue
            self._protocol, self._shell_id, self.endpoint = protocol, shell_id, ep
            log.info("WinRM shell opened on %s", ep)
            return self

        raise ConnectivityError(f"{self.host}: {last_err}") from last_err

    def run_ps(self, script: str) -> PSResult:
        if self._protocol is None or self._shell_id is None:
            raise ConnectivityError("WinRM shell is not open")

        encoded = base64.b64encode(script.encode("utf_16_le")).decode("ascii")
        try:
            command_id = self._protocol.run_command(
                self._shell_id,
                "powershell",
                ["-NoProfile", "-NonInteractive", "-EncodedCommand", encoded],
            )
            try:
                std_out, std_err, status_code = self._protocol.get_command_output(self._shell_id, command_id)
            finally:
                self._protocol.cleanup_command(self._shell_id, command_id)
        except _TRANSPORT_ERRORS as e:
            raise ConnectivityError(f"{self.endpoint}: {e}") from e

        return PSResult(
            status_code=status_code,
            std_out=decode_winrm_output(std_out or b""),
            std_err=decode_winrm_output(std_err or b""),
        )

    def close(self) -> None:
        protocol, shell_id = self._protocol, self._shell_id
        self._protocol, self._shell_id = None, None
        if protocol is None or shell_id is None:
            return
        try:
            protocol.close_shell(shell_id)
            log.info("WinRM shell closed on %s", self.endpoint)
        except _TRANSPORT_ERRORS as e:
            # The server drops idle shells on its own.
            log.warning("WinRM close_shell on %s failed: %s", self.endpoint, e)

    def __enter__(self) -> "WinRMShell":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
