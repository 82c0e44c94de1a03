"""Channel credential resolution.

A channel may reference a secret carrying Git credentials and a config map
carrying extra CA certificates. ``resolve_connection`` folds both into a
``ConnectionConfig`` that the Git transport understands.
"""

from __future__ import annotations

import base64
import binascii
import dataclasses as dc
import typing as typ

from appsub.constants import (
    CONFIG_MAP_CA_CERTS,
    SECRET_ACCESS_TOKEN,
    SECRET_CLIENT_CERT,
    SECRET_CLIENT_KEY,
    SECRET_PASSPHRASE,
    SECRET_SSH_KEY,
    SECRET_USER,
)
from appsub.errors import ConnectionConfigError, GitFetchError
from appsub.models import SubscriptionKey

if typ.TYPE_CHECKING:
    from appsub.models import Channel, ConfigMap, Secret
    from appsub.ports import ClusterClient

__all__ = [
    "ConnectionConfig",
    "RepoConnection",
    "load_channel_connection",
    "resolve_connection",
]


@dc.dataclass(frozen=True, slots=True)
class ConnectionConfig:
    """Credentials and trust material for one Git remote."""

    user: str = ""
    access_token: str = dc.field(default="", repr=False)
    ssh_key: str = dc.field(default="", repr=False)
    passphrase: str = dc.field(default="", repr=False)
    client_key: str = dc.field(default="", repr=False)
    client_cert: str = ""
    ca_certs: str = ""

    @property
    def has_basic_auth(self) -> bool:
        """Return True when both user and access token are set."""
        return bool(self.user and self.access_token)

    @property
    def has_client_cert(self) -> bool:
        """Return True when a client certificate pair is set."""
        return bool(self.client_key and self.client_cert)


@dc.dataclass(frozen=True, slots=True)
class RepoConnection:
    """A Git remote URL with the connection settings used to reach it."""

    url: str
    insecure_skip_verify: bool = False
    config: ConnectionConfig = dc.field(default_factory=ConnectionConfig)

    @classmethod
    def for_channel(
        cls, channel: Channel, config: ConnectionConfig
    ) -> RepoConnection:
        """Build a connection from a channel's URL and TLS setting."""
        return cls(
            url=channel.spec.pathname,
            insecure_skip_verify=channel.spec.insecure_skip_verify,
            config=config,
        )


def _secret_values(secret: Secret) -> dict[str, str]:
    """Return the decoded secret values with ``stringData`` taking precedence."""
    name = secret.metadata.name
    values: dict[str, str] = {}
    for key, encoded in secret.data.items():
        try:
            values[key] = base64.b64decode(encoded, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise ConnectionConfigError.undecodable(name, key) from exc
    values.update(secret.string_data)
    return values


def _config_from_secret(secret: Secret) -> ConnectionConfig:
    values = _secret_values(secret)
    config = ConnectionConfig(
        user=values.get(SECRET_USER, ""),
        access_token=values.get(SECRET_ACCESS_TOKEN, ""),
        ssh_key=values.get(SECRET_SSH_KEY, ""),
        passphrase=values.get(SECRET_PASSPHRASE, ""),
        client_key=values.get(SECRET_CLIENT_KEY, ""),
        client_cert=values.get(SECRET_CLIENT_CERT, ""),
    )

    if bool(config.client_key) != bool(config.client_cert):
        raise ConnectionConfigError.incomplete_client_cert(secret.metadata.name)
    if not (config.ssh_key or config.has_basic_auth or config.has_client_cert):
        raise ConnectionConfigError.missing_credentials(secret.metadata.name)
    return config


def resolve_connection(
    secret: Secret | None, config_map: ConfigMap | None
) -> ConnectionConfig:
    """Build a connection descriptor from a channel's secret and config map.

    Parameters
    ----------
    secret
        Secret referenced by the channel, or ``None`` when it has none.
    config_map
        Config map referenced by the channel, or ``None``.

    Returns
    -------
    ConnectionConfig
        Credentials and CA certificates; empty when both inputs are ``None``.

    Raises
    ------
    ConnectionConfigError
        If the secret carries no usable credentials, only half of a client
        certificate pair, or a value that is not valid base64.

    """
    config = _config_from_secret(secret) if secret is not None else ConnectionConfig()
    if config_map is not None:
        ca_certs = config_map.data.get(CONFIG_MAP_CA_CERTS, "")
        config = dc.replace(config, ca_certs=ca_certs)
    return config


async def load_channel_connection(
    cluster: ClusterClient, channel_key: SubscriptionKey
) -> RepoConnection:
    """Fetch a channel with its secret and config map and build its connection.

    Raises
    ------
    GitFetchError
        If the channel does not exist or is not Git-typed.
    ConnectionConfigError
        If the channel's secret cannot form a usable connection.

    """
    channel = await cluster.get_channel(channel_key)
    if channel is None:
        raise GitFetchError.channel_not_found(str(channel_key))
    if not channel.is_git:
        raise GitFetchError.not_git_channel(str(channel_key), channel.spec.type)

    namespace = channel.metadata.namespace or channel_key.namespace
    secret = None
    if channel.spec.secret_ref is not None:
        ref = channel.spec.secret_ref
        secret = await cluster.get_secret(
            SubscriptionKey(ref.namespace or namespace, ref.name)
        )
    config_map = None
    if channel.spec.config_map_ref is not None:
        ref = channel.spec.config_map_ref
        config_map = await cluster.get_config_map(
            SubscriptionKey(ref.namespace or namespace, ref.name)
        )
    return RepoConnection.for_channel(channel, resolve_connection(secret, config_map))
