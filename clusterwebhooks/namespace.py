"""Webhook protecting platform namespaces and protected namespace labels."""

from __future__ import annotations

import logging
import re
from http import HTTPStatus
from typing import Any, Iterable, Mapping

from clusterwebhooks.admission import (
    AdmissionRequest,
    AdmissionResponse,
    DecodeError,
    FailurePolicy,
    MatchPolicy,
    Operation,
    Rule,
    RuleWithOperations,
    Scope,
    SideEffectClass,
    Webhook,
    allowed,
    denied,
    errored,
)
from clusterwebhooks.ingressconfig import PRIVILEGED_SERVICE_ACCOUNT_GROUPS

WEBHOOK_NAME = "namespace-validation"
BAD_NAMESPACE = r"(^com$|^io$|^in$)"
LAYERED_PRODUCT_NAMESPACE = r"^redhat-.*"
LAYERED_PRODUCT_ADMIN_GROUP = "layered-sre-cluster-admins"
CLUSTER_ADMIN_GROUP = "cluster-admins"
DOC_TEMPLATE = (
    "Managed OpenShift Customers may not modify namespaces specified in the {sources} "
    "ConfigMaps because customer workloads should be placed in customer-created namespaces. "
    "Customers may not create namespaces identified by this regular expression {bad} because "
    "it could interfere with critical DNS resolution. Additionally, customers may not set or "
    "change the values of these Namespace labels {labels}."
)

# '$' is anchored to the very end of the name, never before a trailing newline.
BAD_NAMESPACE_RE = re.compile(r"(^com\Z|^io\Z|^in\Z)")

CLUSTER_ADMIN_USERS = ("kube:admin", "system:admin", "backplane-cluster-admin")
SRE_ADMIN_GROUPS = ("system:serviceaccounts:openshift-backplane-srep",)

# Labels that customer administrators may not set or change.
PROTECTED_LABELS = (
    "managed.openshift.io/storage-pv-quota-exempt",
    "managed.openshift.io/service-lb-quota-exempt",
)

_privileged_service_accounts_re = re.compile(PRIVILEGED_SERVICE_ACCOUNT_GROUPS)
_layered_product_namespace_re = re.compile(LAYERED_PRODUCT_NAMESPACE)

_log = logging.getLogger(WEBHOOK_NAME)


def _go_list(items: Iterable[str]) -> str:
    return "[" + " ".join(items) + "]"


def am_i_admin(request: AdmissionRequest) -> bool:
    """Whether the requester is a cluster or SRE administrator."""
    groups = request.user_info.groups
    if request.user_info.username in CLUSTER_ADMIN_USERS or CLUSTER_ADMIN_GROUP in groups:
        return True
    return any(group in groups for group in SRE_ADMIN_GROUPS)


def protected_labels_in(labels: Mapping[str, str] | None) -> list[str]:
    """Protected label keys present in the given labels, in protected-label order."""
    labels = labels or {}
    return [label for label in PROTECTED_LABELS if label in labels]


def _metadata(namespace: Mapping[str, Any]) -> Mapping[str, Any]:
    metadata = namespace.get("metadata") or {}
    if not isinstance(metadata, Mapping):
        raise DecodeError("metadata is not a mapping")
    return metadata


def _name(namespace: Mapping[str, Any]) -> str:
    name = _metadata(namespace).get("name") or ""
    if not isinstance(name, str):
        raise DecodeError("metadata.name is not a string")
    return name


def _labels(namespace: Mapping[str, Any] | None) -> dict[str, str]:
    if namespace is None:
        return {}
    labels = _metadata(namespace).get("labels") or {}
    if not isinstance(labels, Mapping):
        raise DecodeError("metadata.labels is not a mapping")
    return {str(key): str(value) for key, value in labels.items()}


class NamespaceWebhook(Webhook):
    """Keeps customers out of platform namespaces and protected labels."""

    name = WEBHOOK_NAME
    uri = "/namespace-validation"
    timeout_seconds = 2
    failure_policy = FailurePolicy.IGNORE
    match_policy = MatchPolicy.EQUIVALENT
    side_effects = SideEffectClass.NONE
    object_selector = None
    classic_enabled = True
    hypershift_enabled = False
    rules = (
        RuleWithOperations(
            operations=(Operation.CREATE, Operation.UPDATE, Operation.DELETE),
            rule=Rule(
                api_groups=("",),
                api_versions=("*",),
                resources=("namespaces",),
                scope=Scope.CLUSTER,
            ),
        ),
    )

    def __init__(
        self,
        privileged_namespaces: Iterable[str] = (),
        config_map_sources: Iterable[str] = (),
    ) -> None:
        self.privileged_namespaces = tuple(privileged_namespaces)
        self.config_map_sources = tuple(config_map_sources)
        self._privileged_res = tuple(re.compile(p) for p in self.privileged_namespaces)

    @property
    def doc(self) -> str:  # type: ignore[override]
        """End-user documentation of the webhook."""
        return DOC_TEMPLATE.format(
            sources=_go_list(self.config_map_sources),
            bad=BAD_NAMESPACE,
            labels=_go_list(PROTECTED_LABELS),
        )

    def _is_privileged_namespace(self, name: str) -> bool:
        return any(pattern.search(name) for pattern in self._privileged_res)

    def validate(self, request: AdmissionRequest) -> bool:
        """Check that the request names a user and a Namespace."""
        return request.user_info.username != "" and request.kind.kind == "Namespace"

    def _render_namespace(self, request: AdmissionRequest) -> dict[str, Any]:
        # The previous object, when present, says what the requester is touching.
        if request.old_object:
            return request.decode_old_object()
        return request.decode_object()

    def _render_new_and_old(
        self, request: AdmissionRequest
    ) -> tuple[dict[str, Any] | None, dict[str, Any] | None]:
        old = request.decode_old_object() if request.old_object else None
        new = request.decode_object() if request.object else None
        return new, old

    def authorized(self, request: AdmissionRequest) -> AdmissionResponse:
        """Admit the request unless it touches a platform namespace or protected label."""
        if am_i_admin(request):
            return allowed("Cluster and SRE admins may access").with_uid(request.uid)

        if any(_privileged_service_accounts_re.search(g) for g in request.user_info.groups):
            return allowed("Privileged service accounts may access").with_uid(request.uid)

        try:
            name = _name(self._render_namespace(request))
        except DecodeError as exc:
            _log.error("Couldn't render a Namespace from the incoming request: %s", exc)
            return errored(HTTPStatus.BAD_REQUEST, exc)

        if (
            LAYERED_PRODUCT_ADMIN_GROUP in request.user_info.groups
            and _layered_product_namespace_re.search(name)
        ):
            return allowed("Layered product admins may access").with_uid(request.uid)

        if self._is_privileged_namespace(name):
            _log.info(
                "Non-admin attempted to access a privileged namespace %s matching %s",
                name,
                self.privileged_namespaces,
            )
            return denied(
                "Prevented from accessing Red Hat managed namespaces. Customer workloads "
                "should be placed in customer namespaces, and should not match an entry in "
                f"this list of regular expressions: {_go_list(self.privileged_namespaces)}"
            ).with_uid(request.uid)

        if BAD_NAMESPACE_RE.search(name):
            _log.info("Non-admin attempted to access a potentially harmful namespace %s", name)
            return denied(
                "Prevented from creating a potentially harmful namespace. Customer namespaces "
                "should not match this regular expression, as this would impact DNS "
                f"resolution: {BAD_NAMESPACE}"
            ).with_uid(request.uid)

        reason = self.unauthorized_label_changes(request)
        if reason is not None:
            return denied(f"Denied. Err {reason}").with_uid(request.uid)

        return allowed("RBAC allowed").with_uid(request.uid)

    def unauthorized_label_changes(self, request: AdmissionRequest) -> str | None:
        """Reason the request violates protected labels, or None if it does not."""
        if request.operation == Operation.DELETE:
            return None

        try:
            new, old = self._render_new_and_old(request)
            new_labels = _labels(new)
            old_labels = _labels(old)
        except DecodeError as exc:
            return str(exc)

        protected = _go_list(PROTECTED_LABELS)
        if request.operation == Operation.CREATE:
            if not protected_labels_in(new_labels):
                return None
            return (
                "Managed OpenShift customers may not directly set certain protected labels "
                f"({protected}) on Namespaces"
            )

        if request.operation == Operation.UPDATE:
            found_in_old = protected_labels_in(old_labels)
            found_in_new = protected_labels_in(new_labels)
            if len(found_in_old) != len(found_in_new):
                return (
                    "Managed OpenShift customers may not add or remove protected labels "
                    f"({protected}) from Namespaces"
                )
            for key in found_in_old:
                before = old_labels.get(key, "")
                after = new_labels.get(key, "")
                if before != after:
                    return (
                        "Managed OpenShift customers may not change the value or certain "
                        f"protected labels ({protected}) on Namespaces. "
                        f"{key} changed from {before} to {after}"
                    )
        return None