from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

Backend = Literal["winrm", "ldap"]


class EnvSettings(BaseSettings):
    backend: Backend = Field("winrm", alias="ADSYNC_BACKEND")

    # Directory naming. base_dn wins over domain; both empty -> read from the DC.
    domain: str = Field("", alias="ADSYNC_DOMAIN")
    base_dn: str = Field("", alias="ADSYNC_BASE_DN")
    dns_server: str = Field("", alias="ADSYNC_DNS_SERVER")

    username: str = Field("", alias="ADSYNC_USERNAME")
    password: str = Field("", alias="ADSYNC_PASSWORD")

    winrm_transport: str = Field("ntlm", alias="ADSYNC_WINRM_TRANSPORT")
    winrm_insecure: bool = Field(False, alias="ADSYNC_WINRM_INSECURE")
    winrm_operation_timeout_s: int = Field(30, alias="ADSYNC_WINRM_OPERATION_TIMEOUT")
    winrm_read_timeout_s: int = Field(40, alias="ADSYNC_WINRM_READ_TIMEOUT")

    ldap_port: int = Field(636, alias="ADSYNC_LDAP_PORT")
    ldap_use_ssl: bool = Field(True, alias="ADSYNC_LDAP_USE_SSL")
    ldap_starttls: bool = Field(False, alias="ADSYNC_LDAP_STARTTLS")
    ldap_tls_validate: bool = Field(False, alias="ADSYNC_LDAP_TLS_VALIDATE")

    connect_timeout_s: float = Field(5.0, alias="ADSYNC_CONNECT_TIMEOUT")

    log_level: str = Field("INFO", alias="ADSYNC_LOG_LEVEL")
    log_dir: str = Field("logs", alias="ADSYNC_LOG_DIR")
    log_retention_days: int = Field(30, alias="ADSYNC_LOG_RETENTION_DAYS")

    class Config:
        populate_by_name = True


@lru_cache(maxsize=1)
def get_env() -> EnvSettings:
    return EnvSettings()
