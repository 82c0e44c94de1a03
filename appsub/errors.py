"""Exception hierarchy for Git subscription reconciliation.

The classes map onto the failure taxonomy the sync loop acts on:

* fetch failures (``GitFetchError``) are retried and surface as a failed
  subscription status;
* classification failures (``ClassificationError``) abort the tick without
  touching previously deployed resources;
* per-resource failures (``ResourceTransformError``) drop one manifest;
* batch aborts (``BatchAbortError``) clear the whole pending resource list;
* hook failures (``HookError``) leave one hook side unregistered.
"""

from __future__ import annotations


class AppSubError(Exception):
    """Base class for all appsub errors."""


class AppSubConfigError(AppSubError):
    """Raised when environment configuration is invalid."""

    @classmethod
    def invalid_integer(cls, env_var: str, raw: str) -> AppSubConfigError:
        """Return an error for a non-integer environment value."""
        return cls(f"{env_var} must be an integer, got: {raw!r}")

    @classmethod
    def below_minimum(
        cls, env_var: str, value: int, minimum: int
    ) -> AppSubConfigError:
        """Return an error for a value under the allowed minimum."""
        return cls(f"{env_var} must be at least {minimum}, got: {value}")


class ConnectionConfigError(AppSubError):
    """Raised when channel credentials cannot form a usable connection."""

    @classmethod
    def missing_credentials(cls, secret_name: str) -> ConnectionConfigError:
        """Return an error for a secret that carries no usable credentials."""
        return cls(
            f"secret {secret_name} must provide sshKey, user and accessToken, "
            "or clientKey and clientCert"
        )

    @classmethod
    def incomplete_client_cert(cls, secret_name: str) -> ConnectionConfigError:
        """Return an error for a secret holding half a client certificate pair."""
        return cls(
            f"secret {secret_name} must provide both clientKey and clientCert"
        )

    @classmethod
    def undecodable(cls, secret_name: str, key: str) -> ConnectionConfigError:
        """Return an error for a secret field that is not valid base64."""
        return cls(f"secret {secret_name} field {key} is not valid base64")


class GitFetchError(AppSubError):
    """Raised when the repository cannot be cloned or resolved."""

    @classmethod
    def ref_not_found(cls, ref: str, url: str) -> GitFetchError:
        """Return an error for a ref the remote does not advertise."""
        return cls(f"ref {ref or 'HEAD'} not found on {url}")

    @classmethod
    def channel_not_found(cls, key: str) -> GitFetchError:
        """Return an error for a subscription whose channel is missing."""
        return cls(f"channel {key} not found")

    @classmethod
    def not_git_channel(cls, key: str, channel_type: str) -> GitFetchError:
        """Return an error for a channel that is not Git-typed."""
        return cls(f"channel {key} has type {channel_type!r}, not git")

    @classmethod
    def git_not_installed(cls) -> GitFetchError:
        """Return an error for a missing git executable."""
        return cls("git executable not found on PATH")


class GitCommandError(GitFetchError):
    """Raised when a git subprocess exits unsuccessfully."""

    def __init__(self, message: str, *, args: list[str] | None = None) -> None:
        """Initialise with the failure message and the git arguments."""
        self.git_args = list(args or [])
        super().__init__(message)

    @classmethod
    def timed_out(cls, args: list[str], timeout: float) -> GitCommandError:
        """Return an error for a git command that exceeded its timeout."""
        return cls(f"git {args[0]} timed out after {timeout:g}s", args=args)

    @classmethod
    def failed(cls, args: list[str], stderr: str) -> GitCommandError:
        """Return an error for a git command with a non-zero exit."""
        return cls(f"git {args[0]} failed: {stderr.strip()}", args=args)


class ClassificationError(AppSubError):
    """Raised when the fetched tree cannot be classified."""

    @classmethod
    def missing_path(cls, path: object) -> ClassificationError:
        """Return an error for a resource path that does not exist."""
        return cls(f"resource path {path} does not exist in the repository")

    @classmethod
    def index_failed(cls, detail: str) -> ClassificationError:
        """Return an error for a Helm index that could not be generated."""
        return cls(f"failed to generate helm index: {detail}")


class ResourceTransformError(AppSubError):
    """Raised when a single manifest cannot be transformed."""

    def __init__(self, resource_name: str, reason: str) -> None:
        """Initialise with the resource name and failure reason."""
        self.resource_name = resource_name
        self.reason = reason
        super().__init__(f"failed to transform {resource_name}: {reason}")


class OverrideError(ResourceTransformError):
    """Raised when a package override cannot be applied."""

    @classmethod
    def missing_path(cls, resource_name: str) -> OverrideError:
        """Return an error for an override entry without a path."""
        return cls(resource_name, "override entry has no path")

    @classmethod
    def not_a_mapping(cls, resource_name: str, path: str) -> OverrideError:
        """Return an error for an override path that crosses a scalar."""
        return cls(resource_name, f"override path {path} does not address a mapping")


class BatchAbortError(AppSubError):
    """Raised when the whole tick's resource list must be discarded."""

    @classmethod
    def kustomize_failed(cls, directory: str, detail: str) -> BatchAbortError:
        """Return an error for a failed ``kustomize build``."""
        return cls(f"failed to apply kustomization {directory}: {detail}")

    @classmethod
    def kustomize_override_failed(cls, directory: str, detail: str) -> BatchAbortError:
        """Return an error for a failed kustomization override."""
        return cls(f"failed to override kustomization {directory}: {detail}")


class ApplyError(AppSubError):
    """Raised when the apply engine rejects the resource set."""


class EmptyResourceSetError(AppSubError):
    """Raised when a failed tick produced no resources to apply."""

    def __init__(self, message: str) -> None:
        """Initialise with the aggregated tick error message."""
        self.message = message
        super().__init__(message or "no resources prepared for apply")


class HookError(AppSubError):
    """Raised when hook templates cannot be discovered or applied."""

    @classmethod
    def discovery_failed(cls, hook_type: str, detail: str) -> HookError:
        """Return an error for a hook directory that could not be read."""
        return cls(f"failed to find {hook_type} hooks: {detail}")


class PlacementError(AppSubError):
    """Raised when target clusters cannot be resolved for hooks."""

    @classmethod
    def rule_not_found(cls, key: str) -> PlacementError:
        """Return an error for a placement rule that does not exist."""
        return cls(f"placement rule {key} not found")


class SubscriptionNotFoundError(AppSubError):
    """Raised when a subscription key is not known to the subscriber.

    Attributes
    ----------
    key
        Namespaced name of the missing subscription.

    """

    def __init__(self, key: str) -> None:
        """Initialise with the missing subscription key.

        Parameters
        ----------
        key
            Namespaced name of the missing subscription.

        """
        self.key = key
        super().__init__(f"Subscription not found: {key}")


__all__ = [
    "AppSubConfigError",
    "AppSubError",
    "ApplyError",
    "BatchAbortError",
    "ClassificationError",
    "ConnectionConfigError",
    "EmptyResourceSetError",
    "GitCommandError",
    "GitFetchError",
    "HookError",
    "OverrideError",
    "PlacementError",
    "ResourceTransformError",
    "SubscriptionNotFoundError",
]
