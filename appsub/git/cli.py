"""Git transport that shells out to the ``git`` executable.

Credentials never appear on the command line or in the remote URL: HTTP
credentials are answered by a throwaway askpass script, SSH keys and TLS
material are written to a private temporary directory that is removed as
soon as the command finishes.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import subprocess
import tempfile
import typing as typ
from pathlib import Path

from appsub.errors import GitCommandError, GitFetchError
from appsub.logging import get_logger, log_debug, log_warning

if typ.TYPE_CHECKING:
    from collections.abc import Iterator

    from appsub.git.connection import RepoConnection
    from appsub.git.fetcher import CloneOptions

logger = get_logger(__name__)

DEFAULT_GIT_TIMEOUT_SECONDS = 300.0

_ASKPASS_SCRIPT = """#!/bin/sh
case "$1" in
  Username*) printf '%s' "${APPSUB_GIT_USER}" ;;
  *) printf '%s' "${APPSUB_GIT_SECRET}" ;;
esac
"""

__all__ = ["DEFAULT_GIT_TIMEOUT_SECONDS", "GitCliTransport", "GitInvocation"]


class GitInvocation(typ.NamedTuple):
    """Config flags and environment for git commands against one remote."""

    config: list[str]
    env: dict[str, str]


def _write_private(
    directory: Path, name: str, content: str, mode: int = 0o600
) -> Path:
    path = directory / name
    path.write_text(content if content.endswith("\n") else f"{content}\n")
    path.chmod(mode)
    return path


@contextlib.contextmanager
def connection_invocation(connection: RepoConnection) -> Iterator[GitInvocation]:
    """Yield git config flags and environment that authenticate ``connection``."""
    cfg = connection.config
    env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
    config: list[str] = []

    with tempfile.TemporaryDirectory(prefix="appsub-git-") as raw_dir:
        directory = Path(raw_dir)

        if connection.insecure_skip_verify:
            config += ["-c", "http.sslVerify=false"]
        if cfg.ca_certs:
            ca_path = _write_private(directory, "ca.pem", cfg.ca_certs)
            config += ["-c", f"http.sslCAInfo={ca_path}"]
        if cfg.has_client_cert:
            cert_path = _write_private(directory, "client.crt", cfg.client_cert)
            key_path = _write_private(directory, "client.key", cfg.client_key)
            config += ["-c", f"http.sslCert={cert_path}"]
            config += ["-c", f"http.sslKey={key_path}"]

        if cfg.has_basic_auth or cfg.passphrase:
            askpass = _write_private(directory, "askpass.sh", _ASKPASS_SCRIPT, 0o700)
            env["GIT_ASKPASS"] = str(askpass)
            env["APPSUB_GIT_USER"] = cfg.user
            env["APPSUB_GIT_SECRET"] = cfg.access_token or cfg.passphrase

        if cfg.ssh_key:
            key_path = _write_private(directory, "id_key", cfg.ssh_key)
            host_checking = "no" if connection.insecure_skip_verify else "accept-new"
            env["GIT_SSH_COMMAND"] = (
                f"ssh -i {key_path} -o IdentitiesOnly=yes "
                f"-o StrictHostKeyChecking={host_checking}"
            )
            if cfg.passphrase:
                env["SSH_ASKPASS"] = env["GIT_ASKPASS"]
                env["SSH_ASKPASS_REQUIRE"] = "force"
                env["APPSUB_GIT_SECRET"] = cfg.passphrase

        yield GitInvocation(config=config, env=env)


def _fetch_refspec(options: CloneOptions) -> str:
    if options.commit_hash:
        return options.commit_hash
    if options.revision_tag:
        return f"refs/tags/{options.revision_tag}"
    if options.branch:
        return f"refs/heads/{options.branch}"
    return "HEAD"


def _parse_ls_remote(output: str) -> dict[str, str]:
    refs: dict[str, str] = {}
    for line in output.splitlines():
        sha, _, ref = line.partition("\t")
        if sha and ref:
            refs[ref.strip()] = sha.strip()
    return refs


class GitCliTransport:
    """Clone and resolve repositories with the ``git`` command-line client."""

    def __init__(
        self,
        *,
        timeout_s: float = DEFAULT_GIT_TIMEOUT_SECONDS,
        git_executable: str | None = None,
    ) -> None:
        """Initialise the transport with a per-command timeout."""
        self.timeout_s = timeout_s
        self._git_executable = git_executable

    def _git(self) -> str:
        executable = self._git_executable or shutil.which("git")
        if executable is None:
            raise GitFetchError.git_not_installed()
        return executable

    def _run(
        self,
        args: list[str],
        invocation: GitInvocation,
        *,
        cwd: Path | None = None,
    ) -> str:
        """Run a git subcommand and return stripped stdout.

        Raises
        ------
        GitCommandError
            If the command times out or exits with a non-zero status.

        """
        argv = [self._git(), *invocation.config, *args]
        log_debug(logger, "Running git %s", args[0])
        try:
            result = subprocess.run(  # noqa: S603  # argv built from fixed subcommands
                argv,
                cwd=cwd,
                env=invocation.env,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout_s,
            )
        except subprocess.TimeoutExpired as exc:
            raise GitCommandError.timed_out(args, self.timeout_s) from exc
        except FileNotFoundError as exc:
            raise GitFetchError.git_not_installed() from exc

        if result.returncode != 0:
            raise GitCommandError.failed(args, result.stderr)
        return result.stdout.strip()

    def _clone_from(self, connection: RepoConnection, options: CloneOptions) -> str:
        dest = options.dest_dir
        if dest.exists():
            shutil.rmtree(dest)
        dest.mkdir(parents=True)

        with connection_invocation(connection) as invocation:
            self._run(["init", "--quiet"], invocation, cwd=dest)
            self._run(["remote", "add", "origin", connection.url], invocation, cwd=dest)
            self._run(
                [
                    "fetch",
                    "--quiet",
                    "--depth",
                    str(options.clone_depth),
                    "origin",
                    _fetch_refspec(options),
                ],
                invocation,
                cwd=dest,
            )
            self._run(
                ["checkout", "--quiet", "--detach", "FETCH_HEAD"], invocation, cwd=dest
            )
            return self._run(["rev-parse", "HEAD"], invocation, cwd=dest)

    def _resolve_from(self, connection: RepoConnection, options: CloneOptions) -> str:
        refspec = _fetch_refspec(options)
        patterns = [refspec]
        if options.revision_tag:
            patterns.append(f"{refspec}^{{}}")

        with connection_invocation(connection) as invocation:
            output = self._run(["ls-remote", connection.url, *patterns], invocation)

        refs = _parse_ls_remote(output)
        # Annotated tags advertise the peeled commit under ``^{}``.
        for pattern in reversed(patterns):
            if pattern in refs:
                return refs[pattern]
        raise GitFetchError.ref_not_found(options.ref, connection.url)

    def _with_fallback(
        self,
        options: CloneOptions,
        operation: typ.Callable[[RepoConnection, CloneOptions], str],
    ) -> str:
        connections = options.connections()
        for index, connection in enumerate(connections):
            try:
                return operation(connection, options)
            except GitFetchError as exc:
                if index == len(connections) - 1:
                    raise
                log_warning(
                    logger,
                    "Primary channel %s failed (%s); trying secondary channel",
                    connection.url,
                    exc,
                )
        raise GitFetchError.ref_not_found(options.ref, options.primary.url)

    def clone(self, options: CloneOptions) -> str:
        """Clone ``options.ref`` into ``options.dest_dir`` and return HEAD's commit.

        The primary connection is tried first; the secondary connection, when
        configured, is used only if the primary fails.
        """
        return self._with_fallback(options, self._clone_from)

    def resolve(self, options: CloneOptions) -> str:
        """Return the commit ``options.ref`` points at using ``git ls-remote``."""
        return self._with_fallback(options, self._resolve_from)
