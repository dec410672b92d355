"""adsync CLI: bulk-load OUs, groups and users into Active Directory from CSV."""

from __future__ import annotations

import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .desired import load_desired_state
from .env_settings import get_env
from .errors import AdsyncError, InvalidParametersError, LoadError
from .log_config import setup_logging
from .reconcile import Report, Status
from .runner import RunParameters, reconcile

console = Console()

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_FATAL = 2

_STATUS_STYLE = {
    Status.CREATED: "green",
    Status.ADDED: "green",
    Status.EXISTS: "dim",
    Status.MEMBER: "dim",
    Status.PLANNED: "cyan",
    Status.FAILED: "red",
    Status.SKIPPED: "yellow",
    Status.ABORTED: "red",
}


def _print_report(report: Report) -> None:
    title = "Planned changes" if report.dry_run else "Reconciliation report"
    table = Table(title=title)
    table.add_column("Entity", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Status")
    table.add_column("Details")

    for o in report.outcomes:
        style = _STATUS_STYLE.get(o.status, "")
        table.add_row(o.entity, escape(o.name), f"[{style}]{o.status.value}[/]" if style else o.status.value, escape(o.message))

    console.print(table)
    summary = ", ".join(f"{k}: {v}" for k, v in report.counts.items()) or "nothing to do"
    console.print(f"[bold]Summary:[/] {summary}")
    if report.error:
        console.print(f"[red]Run aborted:[/] {escape(str(report.error))}")


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR (default from ADSYNC_LOG_LEVEL).")
@click.option("--log-dir", default=None, help="Directory for rotated log files; empty string disables file logging.")
def main(log_level: str | None, log_dir: str | None):
    """adsync: converge Active Directory to the OUs, groups and users described in CSV files."""
    env = get_env()
    setup_logging(
        level=log_level or env.log_level,
        retention_days=env.log_retention_days,
        log_dir=env.log_dir if log_dir is None else log_dir,
    )


@main.command("reconcile")
@click.option("--users", "users_file", required=True, type=click.Path(dir_okay=False), help="Users CSV (UserName, OUName, MemberOf).")
@click.option("--groups", "groups_file", required=True, type=click.Path(dir_okay=False), help="Groups CSV (GroupName, OUName, Type).")
@click.option("--dc", "domain_controller", required=True, help="Domain controller host name or IP.")
@click.option("--username", "-u", default=None, help="Account for the session (DOMAIN\\user, UPN or bare name).")
@click.option("--password", "-p", default=None, help="Password; prompted when a username is given without one.")
@click.option("--backend", type=click.Choice(["winrm", "ldap"]), default=None, help="Session transport.")
@click.option("--domain", default=None, help="DNS domain, e.g. corp.example.com.")
@click.option("--base-dn", default=None, help="DN under which OUs are created (default: from domain or the DC).")
@click.option("--dry-run", is_flag=True, help="Inspect and plan only; write nothing.")
@click.option("--report", "report_file", default=None, type=click.Path(dir_okay=False, writable=True), help="Write the report as JSON.")
def reconcile_cmd(
    users_file: str,
    groups_file: str,
    domain_controller: str,
    username: str | None,
    password: str | None,
    backend: str | None,
    domain: str | None,
    base_dn: str | None,
    dry_run: bool,
    report_file: str | None,
):
    """Create missing OUs, groups, users and memberships. Never deletes anything."""
    env = get_env()
    overrides = {
        k: v for k, v in {"backend": backend, "domain": domain, "base_dn": base_dn}.items() if v is not None
    }
    settings = env.model_copy(update=overrides)

    username = username if username is not None else settings.username
    password = password if password is not None else settings.password
    if username and not password:
        password = click.prompt(f"Password for {username}", hide_input=True)

    try:
        params = RunParameters.parse(
            users_file=users_file,
            groups_file=groups_file,
            domain_controller=domain_controller,
            username=username,
            password=password,
        )
        desired = load_desired_state(str(params.groups_file), str(params.users_file))
    except (InvalidParametersError, LoadError) as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        sys.exit(EXIT_FATAL)

    mode = "dry run" if dry_run else "apply"
    console.print(f"\n[bold blue]adsync[/] {mode}: {domain_controller} ({settings.backend})\n")

    try:
        report = reconcile(params, settings=settings, dry_run=dry_run, desired=desired)
    except AdsyncError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        sys.exit(EXIT_FATAL)

    _print_report(report)
    if report_file:
        try:
            with open(report_file, "w", encoding="utf-8") as f:
                f.write(report.to_json())
        except OSError as e:
            console.print(f"[red]Could not write report:[/] {escape(str(e))}")
        else:
            console.print(f"Report written to {report_file}")

    if report.error:
        sys.exit(EXIT_FATAL)
    sys.exit(EXIT_OK if report.ok else EXIT_FAILURES)


@main.command()
@click.option("--users", "users_file", required=True, type=click.Path(dir_okay=False))
@click.option("--groups", "groups_file", required=True, type=click.Path(dir_okay=False))
def validate(users_file: str, groups_file: str):
    """Load and validate both CSV files without connecting anywhere."""
    try:
        desired = load_desired_state(groups_file, users_file)
    except LoadError as e:
        console.print(f"[red]Invalid:[/] {escape(str(e))}")
        sys.exit(EXIT_FATAL)

    ous = desired.ou_names()
    memberships = sum(len(u.member_of) for u in desired.users)
    console.print(
        f"[green]OK[/] {len(desired.groups)} group(s), {len(desired.users)} user(s), "
        f"{len(ous)} OU(s), {memberships} membership(s)"
    )


if __name__ == "__main__":
    main()
