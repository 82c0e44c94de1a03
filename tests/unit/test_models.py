"""Unit tests for subscription and channel structures."""

from __future__ import annotations

import msgspec
import pytest

from appsub.constants import ANNOTATION_CLUSTER_ADMIN
from appsub.models import (
    HookJobsStatus,
    Subscription,
    SubscriptionKey,
    decode,
)
from tests.helpers.builders import make_channel, make_subscription


class TestSubscriptionKey:
    """Parsing and rendering of namespaced keys."""

    def test_str(self) -> None:
        assert str(SubscriptionKey("ns", "name")) == "ns/name"

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("other/chan", SubscriptionKey("other", "chan")),
            ("chan", SubscriptionKey("default", "chan")),
        ],
    )
    def test_parse(self, raw: str, expected: SubscriptionKey) -> None:
        """Bare names take the default namespace."""
        assert SubscriptionKey.parse(raw, default_namespace="default") == expected


class TestSubscription:
    """Decoding subscriptions from camelCase JSON."""

    def test_decodes_camel_case_fields(self) -> None:
        """Nested camelCase keys land on snake_case attributes."""
        subscription = make_subscription(
            spec={
                "secondaryChannel": "backup",
                "packageFilter": {"labelSelector": {"matchLabels": {"app": "web"}}},
                "hookSecretRef": {"name": "tower"},
            }
        )
        spec = subscription.spec
        assert spec.package_filter is not None
        assert spec.package_filter.label_selector is not None
        assert spec.package_filter.label_selector.match_labels == {"app": "web"}
        assert spec.hook_secret_ref is not None
        assert spec.hook_secret_ref.name == "tower"
        secondary = subscription.secondary_channel_key
        assert secondary == SubscriptionKey("default", "backup")

    def test_ignores_unknown_fields(self) -> None:
        """Fields appsub does not model are dropped silently."""
        subscription = decode(
            {
                "metadata": {"name": "a", "namespace": "b", "finalizers": ["x"]},
                "spec": {"channel": "c", "somethingNew": True},
            },
            Subscription,
        )
        assert subscription.channel_key == SubscriptionKey("b", "c")

    def test_cluster_admin_annotation(self) -> None:
        subscription = make_subscription(
            annotations={ANNOTATION_CLUSTER_ADMIN: "True"}
        )
        assert subscription.is_cluster_admin

    def test_status_encodes_hook_jobs_as_ansiblejobs(self) -> None:
        """Hook status serializes under the ``ansiblejobs`` key."""
        subscription = make_subscription()
        subscription = msgspec.structs.replace(
            subscription,
            status=msgspec.structs.replace(
                subscription.status,
                hook_jobs=HookJobsStatus(last_prehook_job="default/pre-1"),
            ),
        )
        status = msgspec.to_builtins(subscription)["status"]
        assert status["ansiblejobs"]["lastPrehookJob"] == "default/pre-1"


@pytest.mark.parametrize(
    ("channel_type", "is_git"),
    [("git", True), ("GitHub", True), ("helmrepo", False)],
)
def test_channel_is_git(channel_type: str, is_git: bool) -> None:  # noqa: FBT001
    """Only git and github channels are Git-typed."""
    assert make_channel(channel_type=channel_type).is_git is is_git
