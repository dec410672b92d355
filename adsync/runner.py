from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .ad_utils import domain_to_base_dn
from .desired import DesiredState, load_desired_state
from .env_settings import EnvSettings, get_env
from .errors import InvalidParametersError
from .reconcile import Reconciler, Report
from .remote import Credential, run

log = logging.getLogger(__name__)


class RunParameters(BaseModel):
    users_file: Path
    groups_file: Path
    domain_controller: str = Field(min_length=1)
    username: str = ""
    password: str = Field(default="", repr=False)

    @field_validator("domain_controller", "username", mode="before")
    @classmethod
    def _strip(cls, v: str) -> str:
        return (v or "").strip()

    @field_validator("users_file", "groups_file")
    @classmethod
    def _must_exist(cls, v: Path) -> Path:
        if not v.is_file():
            raise ValueError(f"file not found: {v}")
        return v

    @model_validator(mode="after")
    def _password_needs_user(self) -> "RunParameters":
        if self.password and not self.username:
            raise ValueError("password given without a username")
        return self

    @classmethod
    def parse(cls, **kwargs) -> "RunParameters":
        try:
            return cls(**kwargs)
        except ValidationError as e:
            msgs = []
            for err in e.errors():
                loc = ".".join(str(x) for x in err.get("loc", ()))
                msgs.append(f"{loc}: {err.get('msg', '')}" if loc else err.get("msg", ""))
            raise InvalidParametersError("; ".join(msgs)) from e

    @property
    def credential(self) -> Credential | None:
        if not self.username:
            return None
        return Credential(self.username, self.password)


def resolve_base_dn(settings: EnvSettings) -> str:
    """Configured base DN, else one derived from the domain; empty means ask the DC."""
    return (settings.base_dn or "").strip() or domain_to_base_dn(settings.domain)


def reconcile(
    params: RunParameters,
    settings: EnvSettings | None = None,
    dry_run: bool = False,
    desired: DesiredState | None = None,
) -> Report:
    """Load the desired state and converge the directory at params.domain_controller.

    Parameter and load errors propagate before any connection is made. Connectivity errors
    end up in the report; per-entity failures are listed in it.
    """
    s = settings or get_env()
    if s.backend == "ldap" and params.credential is None:
        raise InvalidParametersError("the ldap backend needs a username and password")
    if desired is None:
        desired = load_desired_state(str(params.groups_file), str(params.users_file))

    reconciler = Reconciler(desired, base_dn=resolve_base_dn(s), dry_run=dry_run)
    results, error = run(params.domain_controller, params.credential, reconciler, s)
    report = Report.build(reconciler.plan, results, error, dry_run=dry_run)

    log.info(
        "Run against %s finished: %s%s",
        params.domain_controller,
        ", ".join(f"{k}={v}" for k, v in report.counts.items()) or "nothing to do",
        f"; error: {report.error}" if report.error else "",
    )
    return report
