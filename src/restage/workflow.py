"""Pipeline orchestration: query, filter, run, detect, re-stage."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from restage.config import RunConfig
from restage.filtering import CompiledGlob, FilterError, compile_glob
from restage.git import EmptyCommitPreventedError, GitRepository, RepositoryError
from restage.logging import JsonlAuditLogger, RunEvent, new_run_id, summarize_command, utc_timestamp
from restage.runner import CommandInterrupted, Invocation, SpawnError
from restage.runner import run as run_command
from restage.staging import ChangeSet, RestageError, RestageReport, apply, detect
from restage.staging.query import snapshot, staged_paths

EXIT_OK = 0
EXIT_REPOSITORY_ERROR = 1
EXIT_USAGE_ERROR = 2
EXIT_SPAWN_ERROR = 127

UNSTAGED_PATCH_NAME = "unstaged.patch"

CommandRunner = Callable[[Invocation, Sequence[str], Path | None], int]


@dataclass(slots=True)
class RunResult:
    """Outcome of one pipeline run."""

    exit_code: int
    outcome: str
    files: tuple[str, ...] = ()
    command_status: int | None = None
    changeset: ChangeSet | None = None
    report: RestageReport | None = None
    restaged: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    rolled_back: bool = False
    errors: list[str] = field(default_factory=list)


class Workflow:
    """Runs one command over the staged files of a repository.

    Concurrent runs against the same repository are unsupported; git's own
    index lock is the only protection.
    """

    def __init__(
        self,
        repository: GitRepository,
        config: RunConfig,
        command_tokens: Sequence[str],
        err_stream: TextIO,
        quiet: bool = False,
        runner: CommandRunner = run_command,
    ) -> None:
        self._repository = repository
        self._config = config
        self._command_tokens = tuple(command_tokens)
        self._err = err_stream
        self._quiet = quiet
        self._runner = runner

    def run(self) -> RunResult:
        """Execute the pipeline and return the exit code to report."""
        result = self._execute()
        for message in result.errors:
            self._write(f"error: {message}")
        self._log_run(result)
        return result

    def _execute(self) -> RunResult:
        try:
            pattern = self._compile_filter()
        except FilterError as error:
            return RunResult(
                exit_code=EXIT_USAGE_ERROR, outcome="filter_error", errors=[str(error)]
            )

        try:
            paths = staged_paths(self._repository, pattern)
        except RepositoryError as error:
            return _repository_failure(error)

        if not paths and self._config.run.skip_when_empty:
            self._progress("No staged files matched; skipping the command.")
            return RunResult(exit_code=EXIT_OK, outcome="ok")

        patch_path: Path | None = None
        try:
            if self._config.restage.hide_unstaged:
                patch_path = self._hide_unstaged(paths)
            result = self._run_and_restage(paths)
        except RepositoryError as error:
            result = _repository_failure(error)
        except BaseException:
            if patch_path is not None:
                restore_error = self._restore_unstaged(patch_path)
                if restore_error is not None:
                    self._write(f"error: {restore_error}")
            raise
        if patch_path is not None:
            restore_error = self._restore_unstaged(patch_path)
            if restore_error is not None:
                if result.exit_code == EXIT_OK:
                    result.exit_code = EXIT_REPOSITORY_ERROR
                    result.outcome = "repository_error"
                result.errors.append(restore_error)
        return result

    def _run_and_restage(self, paths: list[str]) -> RunResult:
        before = snapshot(self._repository, paths)
        files = tuple(record.path for record in before)
        if not self._config.run.shell:
            error = SpawnError(
                reason="No shell configured.",
                hint="Pass --shell or set $SHELL.",
            )
            return RunResult(
                exit_code=EXIT_SPAWN_ERROR,
                outcome="spawn_error",
                files=files,
                errors=[_with_hint(error.reason, error.hint)],
            )
        invocation = Invocation(
            shell=self._config.run.shell,
            command_tokens=self._command_tokens,
            filter=self._config.run.filter,
        )
        self._progress(f"Running command on {len(files)} staged file(s).")
        try:
            status = self._runner(invocation, files, self._repository.root)
        except SpawnError as error:
            return RunResult(
                exit_code=EXIT_SPAWN_ERROR,
                outcome="spawn_error",
                files=files,
                errors=[_with_hint(error.reason, error.hint)],
            )
        except CommandInterrupted as error:
            return RunResult(
                exit_code=error.exit_code,
                outcome="interrupted",
                files=files,
                errors=[f"{error} The index was left untouched."],
            )

        result = RunResult(
            exit_code=status,
            outcome="ok" if status == 0 else "command_failed",
            files=files,
            command_status=status,
        )
        backup: str | None = None
        try:
            # Partial fixes are re-staged even when the command failed.
            result.changeset = detect(before, files, self._repository.root)
            if result.changeset.has_changes:
                backup = self._repository.write_tree()
            result.report = apply(self._repository, result.changeset)
            result.restaged = (*result.report.added, *result.report.removed)
            self._progress(
                f"Re-staged {len(result.report.added)} modified and "
                f"{len(result.report.removed)} deleted file(s)."
            )
            self._guard_empty_commit(result.changeset)
        except RestageError as error:
            result.outcome = "restage_error"
            result.exit_code = status or EXIT_REPOSITORY_ERROR
            result.restaged = error.succeeded
            result.failed = error.failed
            result.errors.append(_with_hint(error.reason, error.hint))
            if error.succeeded:
                self._rollback_index(result, backup)
        except EmptyCommitPreventedError as error:
            result.outcome = "repository_error"
            result.exit_code = status or EXIT_REPOSITORY_ERROR
            result.errors.append(_with_hint(error.reason, error.hint))
            self._rollback_index(result, backup)
        except RepositoryError as error:
            result.outcome = "repository_error"
            result.exit_code = status or EXIT_REPOSITORY_ERROR
            result.errors.append(_with_hint(error.reason, error.hint))
        return result

    def _rollback_index(self, result: RunResult, tree: str | None) -> None:
        """Put back the index recorded before re-staging started."""
        if tree is None:
            return
        try:
            self._repository.read_tree(tree)
        except RepositoryError as error:
            result.errors.append(
                f"Could not restore the index: {_with_hint(error.reason, error.hint)}"
            )
            return
        result.failed = tuple(sorted({*result.restaged, *result.failed}))
        result.restaged = ()
        result.rolled_back = True
        result.errors.append("The index was restored to its state before re-staging.")

    def _guard_empty_commit(self, changeset: ChangeSet) -> None:
        if not changeset.has_changes or self._config.restage.allow_empty:
            return
        if not self._repository.has_staged_changes():
            raise EmptyCommitPreventedError(
                reason="Prevented an empty git commit.",
                hint="The command reverted every staged change; use --allow-empty to keep going.",
            )

    def _compile_filter(self) -> CompiledGlob | None:
        if self._config.run.filter is None:
            return None
        return compile_glob(self._config.run.filter)

    def _hide_unstaged(self, paths: list[str]) -> Path | None:
        """Stash unstaged hunks of partially staged paths in a backup patch.

        A patch left behind by an earlier run that could not be restored is
        never overwritten; the run stops until the user has dealt with it.
        """
        patch_path = self._config.git_dir / "restage" / UNSTAGED_PATCH_NAME
        if patch_path.exists():
            raise RepositoryError(
                reason=(
                    f"Unstaged changes from an earlier run are still saved in {patch_path}."
                ),
                hint=(
                    f"Apply them with 'git apply {patch_path}' and delete the file, "
                    "or rerun with --no-hide-unstaged."
                ),
            )
        partial = self._repository.unstaged_paths(paths)
        if not partial:
            return None
        patch = self._repository.save_unstaged_patch(partial)
        if not patch:
            return None
        try:
            patch_path.parent.mkdir(parents=True, exist_ok=True)
            patch_path.write_bytes(patch)
        except OSError as error:
            raise RepositoryError(
                reason=f"Could not save unstaged changes to {patch_path}: {error}.",
                hint="Use --no-hide-unstaged to run without hiding unstaged changes.",
            ) from error
        self._progress(f"Hiding unstaged changes in {len(partial)} partially staged file(s).")
        try:
            self._repository.checkout_staged(partial)
        except RepositoryError:
            patch_path.unlink(missing_ok=True)
            raise
        return patch_path

    def _restore_unstaged(self, patch_path: Path) -> str | None:
        try:
            restored = self._repository.apply_patch(patch_path.read_bytes())
        except (OSError, RepositoryError) as error:
            restored = False
            self._write(f"error: {error}")
        if not restored:
            return (
                "Unstaged changes could not be restored because they conflict with the "
                f"command's edits. They were saved to {patch_path}; apply them with "
                f"'git apply {patch_path}' after resolving the conflict."
            )
        patch_path.unlink(missing_ok=True)
        return None

    def _log_run(self, result: RunResult) -> None:
        if not self._config.audit.enabled:
            return
        metadata: dict[str, object] = {
            "file_count": len(result.files),
            "files": list(result.files),
            "config": self._config.to_public_dict(),
        }
        if result.command_status is not None:
            metadata["command_status"] = result.command_status
        if result.changeset is not None:
            metadata["modified"] = list(result.changeset.modified)
            metadata["deleted"] = list(result.changeset.deleted)
            metadata["unchanged"] = list(result.changeset.unchanged)
        if result.restaged or result.failed:
            metadata["restaged"] = list(result.restaged)
            metadata["failed"] = list(result.failed)
        if result.rolled_back:
            metadata["rolled_back"] = True
        event = RunEvent(
            timestamp=utc_timestamp(),
            run_id=new_run_id(),
            command=summarize_command(self._command_tokens),
            filter=self._config.run.filter,
            exit_code=result.exit_code,
            outcome=result.outcome,
            metadata=metadata,
        )
        try:
            JsonlAuditLogger(self._config.audit.path).append(event)
        except OSError as error:
            self._write(f"warning: could not write audit log {self._config.audit.path}: {error}")

    def _progress(self, message: str) -> None:
        if not self._quiet:
            self._write(message)

    def _write(self, message: str) -> None:
        self._err.write(f"restage: {message}\n")
        self._err.flush()


def _repository_failure(error: RepositoryError) -> RunResult:
    return RunResult(
        exit_code=EXIT_REPOSITORY_ERROR,
        outcome="repository_error",
        errors=[_with_hint(error.reason, error.hint)],
    )


def _with_hint(reason: str, hint: str) -> str:
    if not hint:
        return reason
    return f"{reason} Hint: {hint}"
