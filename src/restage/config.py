"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

_T = TypeVar("_T")

CONFIG_FILENAME = "restage.toml"
SHELL_ENV_VAR = "SHELL"
DEFAULT_AUDIT_RELATIVE_PATH = Path("restage") / "audit.jsonl"


@dataclass(slots=True, frozen=True)
class RunSettings:
    """How the command is selected and invoked."""

    filter: str | None
    shell: str | None
    skip_when_empty: bool


@dataclass(slots=True, frozen=True)
class RestageSettings:
    """Index update behavior after the command ran."""

    hide_unstaged: bool
    allow_empty: bool


@dataclass(slots=True, frozen=True)
class AuditSettings:
    """Run audit log location."""

    enabled: bool
    path: Path


@dataclass(slots=True, frozen=True)
class RunConfig:
    """Fully merged configuration for one run."""

    repo_root: Path
    git_dir: Path
    run: RunSettings
    restage: RestageSettings
    audit: AuditSettings

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot for the audit log."""
        return {
            "repo_root": str(self.repo_root),
            "run": {
                "filter": self.run.filter,
                "shell": self.run.shell,
                "skip_when_empty": self.run.skip_when_empty,
            },
            "restage": {
                "hide_unstaged": self.restage.hide_unstaged,
                "allow_empty": self.restage.allow_empty,
            },
            "audit": {
                "enabled": self.audit.enabled,
                "path": str(self.audit.path),
            },
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional command-line overrides applied at highest precedence."""

    filter: str | None = None
    shell: str | None = None
    skip_when_empty: bool | None = None
    hide_unstaged: bool | None = None
    allow_empty: bool | None = None
    audit_enabled: bool | None = None
    audit_path: Path | None = None


def default_config(
    repo_root: Path, git_dir: Path, environ: Mapping[str, str] | None = None
) -> RunConfig:
    """Build default config, taking the shell from $SHELL."""
    env = os.environ if environ is None else environ
    shell = env.get(SHELL_ENV_VAR) or None
    resolved_git_dir = git_dir.resolve()
    return RunConfig(
        repo_root=repo_root.resolve(),
        git_dir=resolved_git_dir,
        run=RunSettings(filter=None, shell=shell, skip_when_empty=False),
        restage=RestageSettings(hide_unstaged=True, allow_empty=False),
        audit=AuditSettings(enabled=True, path=resolved_git_dir / DEFAULT_AUDIT_RELATIVE_PATH),
    )


def load_repo_config_file(repo_root: Path) -> dict[str, object]:
    """Load optional restage.toml from repo root."""
    config_path = repo_root / CONFIG_FILENAME
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        try:
            payload = tomllib.load(handle)
        except tomllib.TOMLDecodeError as error:
            raise ValueError(f"{CONFIG_FILENAME} is not valid TOML: {error}") from error
    if not isinstance(payload, dict):
        raise ValueError(f"{CONFIG_FILENAME} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def _optional_str(
    table: dict[str, object], section: str, field: str, default: str | None
) -> str | None:
    if field not in table:
        return default
    value = table[field]
    if not isinstance(value, str) or not value:
        raise ValueError(f"Config field '{section}.{field}' must be a non-empty string.")
    return value


def _optional_bool(table: dict[str, object], section: str, field: str, default: bool) -> bool:
    if field not in table:
        return default
    value = table[field]
    if not isinstance(value, bool):
        raise ValueError(f"Config field '{section}.{field}' must be a boolean.")
    return value


def merge_config(
    base: RunConfig, repo_payload: dict[str, object], overrides: CliOverrides
) -> RunConfig:
    """Merge defaults, repo config, then CLI overrides."""
    run_payload = _get_table(repo_payload, "run")
    restage_payload = _get_table(repo_payload, "restage")
    audit_payload = _get_table(repo_payload, "audit")

    audit_path = base.audit.path
    raw_audit_path = _optional_str(audit_payload, "audit", "path", None)
    if raw_audit_path is not None:
        audit_path = _resolve_against(base.repo_root, Path(raw_audit_path))

    merged = RunConfig(
        repo_root=base.repo_root,
        git_dir=base.git_dir,
        run=RunSettings(
            filter=_optional_str(run_payload, "run", "filter", base.run.filter),
            shell=_optional_str(run_payload, "run", "shell", base.run.shell),
            skip_when_empty=_optional_bool(
                run_payload, "run", "skip_when_empty", base.run.skip_when_empty
            ),
        ),
        restage=RestageSettings(
            hide_unstaged=_optional_bool(
                restage_payload, "restage", "hide_unstaged", base.restage.hide_unstaged
            ),
            allow_empty=_optional_bool(
                restage_payload, "restage", "allow_empty", base.restage.allow_empty
            ),
        ),
        audit=AuditSettings(
            enabled=_optional_bool(audit_payload, "audit", "enabled", base.audit.enabled),
            path=audit_path,
        ),
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(config: RunConfig, overrides: CliOverrides) -> RunConfig:
    """Apply command-line overrides at highest precedence."""
    audit_path = config.audit.path
    if overrides.audit_path is not None:
        audit_path = _resolve_against(config.repo_root, overrides.audit_path)
    return RunConfig(
        repo_root=config.repo_root,
        git_dir=config.git_dir,
        run=RunSettings(
            filter=_pick(overrides.filter, config.run.filter),
            shell=_pick(overrides.shell, config.run.shell),
            skip_when_empty=_pick(overrides.skip_when_empty, config.run.skip_when_empty),
        ),
        restage=RestageSettings(
            hide_unstaged=_pick(overrides.hide_unstaged, config.restage.hide_unstaged),
            allow_empty=_pick(overrides.allow_empty, config.restage.allow_empty),
        ),
        audit=AuditSettings(
            enabled=_pick(overrides.audit_enabled, config.audit.enabled),
            path=audit_path,
        ),
    )


def load_effective_config(
    repo_root: Path,
    git_dir: Path,
    overrides: CliOverrides | None = None,
    environ: Mapping[str, str] | None = None,
) -> RunConfig:
    """Load effective config using merge order defaults -> repo config -> overrides."""
    base = default_config(repo_root, git_dir, environ=environ)
    payload = load_repo_config_file(base.repo_root)
    return merge_config(base, payload, overrides or CliOverrides())


def _pick(override: _T | None, current: _T) -> _T:
    return current if override is None else override


def _resolve_against(root: Path, path: Path) -> Path:
    if path.is_absolute():
        return path.resolve()
    return (root / path).resolve()
