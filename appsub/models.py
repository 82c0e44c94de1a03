"""Typed subscription, channel and status structures.

Objects arrive from the cluster as camelCase JSON and are decoded with
``msgspec.convert``; unknown fields are ignored so newer API revisions keep
decoding.
"""

from __future__ import annotations

import dataclasses
import enum
import typing as typ

import msgspec

from appsub.constants import (
    ANNOTATION_CLUSTER_ADMIN,
    APPS_API_VERSION,
    GIT_CHANNEL_TYPES,
    SUBSCRIPTION_KIND,
)

T = typ.TypeVar("T")


class SubscriptionPhase(enum.StrEnum):
    """Phases written to a subscription's status by the sync loop."""

    SUBSCRIBED = "Subscribed"
    FAILED = "Failed"


@dataclasses.dataclass(frozen=True, slots=True, order=True)
class SubscriptionKey:
    """Namespaced identity of a subscription or any namespaced object."""

    namespace: str
    name: str

    def __str__(self) -> str:
        """Return the ``namespace/name`` form used in logs and annotations."""
        return f"{self.namespace}/{self.name}"

    @classmethod
    def parse(cls, value: str, *, default_namespace: str = "") -> SubscriptionKey:
        """Parse ``namespace/name``; a bare name takes ``default_namespace``."""
        namespace, sep, name = value.partition("/")
        if not sep:
            return cls(default_namespace, namespace)
        return cls(namespace, name)


class ObjectMeta(msgspec.Struct, kw_only=True, rename="camel"):
    """Subset of Kubernetes object metadata read by appsub."""

    name: str = ""
    namespace: str = ""
    uid: str = ""
    generation: int = 0
    resource_version: str = ""
    labels: dict[str, str] = msgspec.field(default_factory=dict)
    annotations: dict[str, str] = msgspec.field(default_factory=dict)


class ObjectReference(msgspec.Struct, kw_only=True, rename="camel"):
    """Reference to another object, optionally typed."""

    name: str
    namespace: str = ""
    kind: str = ""
    api_version: str = ""


class LabelSelectorRequirement(msgspec.Struct, kw_only=True, rename="camel"):
    """Set-based label requirement (``In``, ``NotIn``, ``Exists``...)."""

    key: str
    operator: typ.Literal["In", "NotIn", "Exists", "DoesNotExist"]
    values: list[str] = msgspec.field(default_factory=list)


class LabelSelector(msgspec.Struct, kw_only=True, rename="camel"):
    """Kubernetes label selector."""

    match_labels: dict[str, str] = msgspec.field(default_factory=dict)
    match_expressions: list[LabelSelectorRequirement] = msgspec.field(
        default_factory=list
    )


class PackageFilter(msgspec.Struct, kw_only=True, rename="camel"):
    """Filter narrowing which manifests of a repository are deployed.

    Attributes
    ----------
    label_selector
        Manifests must carry labels matching this selector.
    annotations
        Manifests must carry every listed annotation with the same value.
    version
        Chart version a Helm chart must have to be indexed.
    filter_ref
        Config map whose ``path`` field selects the resource directory.

    """

    label_selector: LabelSelector | None = None
    annotations: dict[str, str] | None = None
    version: str = ""
    filter_ref: ObjectReference | None = None


class PackageOverride(msgspec.Struct, kw_only=True, rename="camel"):
    """Override rules applied to the package called ``package_name``."""

    package_name: str
    package_alias: str = ""
    package_overrides: list[dict[str, typ.Any]] = msgspec.field(default_factory=list)


class ClusterRef(msgspec.Struct, kw_only=True, frozen=True):
    """Managed cluster identity used for placement."""

    name: str
    namespace: str = ""


class Placement(msgspec.Struct, kw_only=True, rename="camel"):
    """Placement rules; fields are consulted in priority order."""

    local: bool | None = None
    placement_ref: ObjectReference | None = None
    clusters: list[ClusterRef] | None = None
    cluster_selector: LabelSelector | None = None


class HourRange(msgspec.Struct, kw_only=True):
    """Clock range such as ``09:00AM``-``05:30PM``."""

    start: str
    end: str


class TimeWindow(msgspec.Struct, kw_only=True):
    """Active or blocked deployment window."""

    windowtype: typ.Literal["active", "blocked"] = "active"
    location: str = "UTC"
    daysofweek: list[str] = msgspec.field(default_factory=list)
    hours: list[HourRange] = msgspec.field(default_factory=list)


class ResourceRule(msgspec.Struct, kw_only=True, rename="camel"):
    """Allow or deny rule for an API group/version and kinds."""

    api_version: str = ""
    kinds: list[str] = msgspec.field(default_factory=list)


class SubscriptionSpec(msgspec.Struct, kw_only=True, rename="camel"):
    """Desired state declared by a subscription."""

    channel: str
    secondary_channel: str = ""
    package: str = ""
    package_filter: PackageFilter | None = None
    package_overrides: list[PackageOverride] | None = None
    placement: Placement | None = None
    timewindow: TimeWindow | None = None
    hook_secret_ref: ObjectReference | None = None
    allow: list[ResourceRule] | None = None
    deny: list[ResourceRule] | None = None


class HookJobsStatus(msgspec.Struct, kw_only=True, rename="camel"):
    """Hook job history written to the subscription status."""

    last_prehook_job: str = ""
    prehook_jobs_history: list[str] = msgspec.field(default_factory=list)
    last_posthook_job: str = ""
    posthook_jobs_history: list[str] = msgspec.field(default_factory=list)


class SubscriptionStatus(msgspec.Struct, kw_only=True, rename="camel"):
    """Observed state of a subscription."""

    phase: str = ""
    message: str = ""
    last_update_time: str | None = None
    hook_jobs: HookJobsStatus | None = msgspec.field(default=None, name="ansiblejobs")


class Subscription(msgspec.Struct, kw_only=True, rename="camel"):
    """Application subscription binding a channel to deployed resources."""

    api_version: str = APPS_API_VERSION
    kind: str = SUBSCRIPTION_KIND
    metadata: ObjectMeta
    spec: SubscriptionSpec
    status: SubscriptionStatus = msgspec.field(default_factory=SubscriptionStatus)

    @property
    def key(self) -> SubscriptionKey:
        """Return the subscription's namespaced identity."""
        return SubscriptionKey(self.metadata.namespace, self.metadata.name)

    @property
    def channel_key(self) -> SubscriptionKey:
        """Return the key of the primary channel."""
        return SubscriptionKey.parse(
            self.spec.channel, default_namespace=self.metadata.namespace
        )

    @property
    def secondary_channel_key(self) -> SubscriptionKey | None:
        """Return the key of the secondary channel, if one is declared."""
        if not self.spec.secondary_channel:
            return None
        return SubscriptionKey.parse(
            self.spec.secondary_channel, default_namespace=self.metadata.namespace
        )

    def annotation(self, key: str) -> str:
        """Return an annotation value, or an empty string when absent."""
        return self.metadata.annotations.get(key, "")

    @property
    def is_cluster_admin(self) -> bool:
        """Return True when the subscription carries cluster-admin=true."""
        return self.annotation(ANNOTATION_CLUSTER_ADMIN).lower() == "true"


class ChannelSpec(msgspec.Struct, kw_only=True, rename="camel"):
    """Source a subscription points at."""

    type: str
    pathname: str
    insecure_skip_verify: bool = False
    secret_ref: ObjectReference | None = None
    config_map_ref: ObjectReference | None = None


class Channel(msgspec.Struct, kw_only=True, rename="camel"):
    """Channel resource describing a Git repository."""

    metadata: ObjectMeta
    spec: ChannelSpec

    @property
    def is_git(self) -> bool:
        """Return True for ``git`` and ``github`` channel types."""
        return self.spec.type.lower() in GIT_CHANNEL_TYPES


class Secret(msgspec.Struct, kw_only=True, rename="camel"):
    """Kubernetes secret; ``data`` values are base64 encoded."""

    metadata: ObjectMeta
    data: dict[str, str] = msgspec.field(default_factory=dict)
    string_data: dict[str, str] = msgspec.field(default_factory=dict)


class ConfigMap(msgspec.Struct, kw_only=True, rename="camel"):
    """Kubernetes config map."""

    metadata: ObjectMeta
    data: dict[str, str] = msgspec.field(default_factory=dict)


def decode(obj: object, type_: type[T]) -> T:
    """Convert a decoded JSON object into one of the structs above."""
    return msgspec.convert(obj, type=type_, strict=False)
