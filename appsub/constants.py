"""Annotation keys, labels and fixed values shared across appsub.

The annotation and label keys are part of the subscription API contract
and must match what subscription authors write in their manifests.
"""

from __future__ import annotations

APPS_GROUP = "apps.open-cluster-management.io"
APPS_API_VERSION = f"{APPS_GROUP}/v1"

SUBSCRIPTION_KIND = "Subscription"
HELM_RELEASE_KIND = "HelmRelease"
PLACEMENT_RULE_KIND = "PlacementRule"

# Subscription annotations
ANNOTATION_GITHUB_PATH = f"{APPS_GROUP}/github-path"
ANNOTATION_GIT_PATH = f"{APPS_GROUP}/git-path"
ANNOTATION_GITHUB_BRANCH = f"{APPS_GROUP}/github-branch"
ANNOTATION_GIT_BRANCH = f"{APPS_GROUP}/git-branch"
ANNOTATION_GIT_DESIRED_COMMIT = f"{APPS_GROUP}/git-desired-commit"
ANNOTATION_GIT_TAG = f"{APPS_GROUP}/git-tag"
ANNOTATION_GIT_CLONE_DEPTH = f"{APPS_GROUP}/git-clone-depth"
ANNOTATION_RECONCILE_RATE = f"{APPS_GROUP}/reconcile-rate"
ANNOTATION_WEBHOOK_ENABLED = f"{APPS_GROUP}/webhook-enabled"
ANNOTATION_CLUSTER_ADMIN = f"{APPS_GROUP}/cluster-admin"
ANNOTATION_CURRENT_NAMESPACE_SCOPED = f"{APPS_GROUP}/current-namespace-scoped"
ANNOTATION_RECONCILE_OPTION = f"{APPS_GROUP}/reconcile-option"
ANNOTATION_USER_IDENTITY = f"{APPS_GROUP}/user-identity"
ANNOTATION_USER_GROUP = f"{APPS_GROUP}/user-group"
ANNOTATION_HOSTING_SUBSCRIPTION = f"{APPS_GROUP}/hosting-subscription"

# Labels
LABEL_PAUSE = "subscription-pause"
LABEL_PART_OF = "app.kubernetes.io/part-of"
LABEL_APP = "app"

MERGE_RECONCILE = "merge"

# Channel secret and config map keys
SECRET_USER = "user"
SECRET_ACCESS_TOKEN = "accessToken"  # noqa: S105 - secret field name
SECRET_SSH_KEY = "sshKey"
SECRET_PASSPHRASE = "passphrase"  # noqa: S105 - secret field name
SECRET_CLIENT_KEY = "clientKey"
SECRET_CLIENT_CERT = "clientCert"
CONFIG_MAP_CA_CERTS = "caCerts"
FILTER_CONFIG_PATH = "path"

GIT_CHANNEL_TYPES = frozenset({"git", "github"})

# Hook jobs
HOOK_JOB_KIND = "AnsibleJob"
HOOK_JOB_API_VERSION = "tower.ansible.com/v1alpha1"
HOOK_JOB_SUCCESS = "successful"
HOOK_HISTORY_LIMIT = 10

# Manifest kinds that are applied before everything else
CRD_AND_NAMESPACE_KINDS = frozenset({"CustomResourceDefinition", "Namespace"})
RBAC_KINDS = frozenset(
    {"ServiceAccount", "Role", "ClusterRole", "RoleBinding", "ClusterRoleBinding"}
)

CHART_FILE = "Chart.yaml"
KUSTOMIZATION_FILES = ("kustomization.yaml", "kustomization.yml", "Kustomization")
MANIFEST_SUFFIXES = frozenset({".yaml", ".yml"})
