"""Webhook preventing IngressControllers from tolerating master nodes."""

from __future__ import annotations

import logging
from dataclasses import replace
from http import HTTPStatus
from typing import Any

from clusterwebhooks.admission import (
    AdmissionRequest,
    AdmissionResponse,
    DecodeError,
    FailurePolicy,
    LabelSelector,
    LabelSelectorOperator,
    LabelSelectorRequirement,
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

WEBHOOK_NAME = "ingresscontroller-validation"
DOC_STRING = (
    "Managed OpenShift Customer may create IngressControllers without necessary taints. "
    "This can cause those workloads to be provisioned on master nodes."
)
LEGACY_INGRESS_SUPPORT_FEATURE_FLAG = "ext-managed.openshift.io/legacy-ingress-support"
MASTER_TOLERATION_KEY = "node-role.kubernetes.io/master"

ALLOWED_USERS = ("backplane-cluster-admin",)

_log = logging.getLogger(WEBHOOK_NAME)


def is_allowed_user(request: AdmissionRequest) -> bool:
    """Whether the requesting user is exempt from toleration checks."""
    username = request.user_info.username
    _log.info("Checking username %s on whitelist", username)
    if username in ALLOWED_USERS:
        _log.info("%s is listed in whitelist", username)
        return True
    _log.info("No allowed user found")
    return False


def _tolerations(ingress_controller: dict[str, Any]) -> list[dict[str, Any]]:
    spec = ingress_controller.get("spec") or {}
    if not isinstance(spec, dict):
        raise DecodeError("spec is not a mapping")
    placement = spec.get("nodePlacement") or {}
    if not isinstance(placement, dict):
        raise DecodeError("spec.nodePlacement is not a mapping")
    tolerations = placement.get("tolerations") or []
    if not isinstance(tolerations, list) or not all(isinstance(t, dict) for t in tolerations):
        raise DecodeError("spec.nodePlacement.tolerations is not a list of mappings")
    return tolerations


class IngressControllerWebhook(Webhook):
    """Denies IngressControllers that tolerate master nodes."""

    name = WEBHOOK_NAME
    uri = "/" + WEBHOOK_NAME
    doc = DOC_STRING
    timeout_seconds = 1
    failure_policy = FailurePolicy.IGNORE
    match_policy = MatchPolicy.EQUIVALENT
    side_effects = SideEffectClass.NONE
    object_selector = None
    classic_enabled = True
    hypershift_enabled = False
    rules = (
        RuleWithOperations(
            operations=(Operation.CREATE, Operation.UPDATE),
            rule=Rule(
                api_groups=("operator.openshift.io",),
                api_versions=("*",),
                resources=("ingresscontroller", "ingresscontrollers"),
                scope=Scope.NAMESPACED,
            ),
        ),
    )

    def validate(self, request: AdmissionRequest) -> bool:
        """Check that the request names a user and an IngressController."""
        return request.user_info.username != "" and request.kind.kind == "IngressController"

    def authorized(self, request: AdmissionRequest) -> AdmissionResponse:
        """Admit the request unless it places ingress pods on master nodes."""
        try:
            tolerations = _tolerations(request.decode_object())
        except DecodeError as exc:
            _log.error("Couldn't render an IngressController from the incoming request: %s", exc)
            return errored(HTTPStatus.BAD_REQUEST, exc)

        username = request.user_info.username
        if username == "system:unauthenticated":
            # An unauthenticated user should have no permissions at all.
            _log.info("system:unauthenticated made a webhook request. Check RBAC rules")
            return denied("Unauthenticated").with_uid(request.uid)
        if username.startswith("system:"):
            return allowed("authenticated system: users are allowed").with_uid(request.uid)
        if username.startswith("kube:"):
            return allowed("kube: users are allowed").with_uid(request.uid)

        if not is_allowed_user(request):
            for toleration in tolerations:
                if MASTER_TOLERATION_KEY in str(toleration.get("key") or ""):
                    return denied(
                        "Not allowed to provision ingress controller pods with toleration for master nodes."
                    ).with_uid(request.uid)

        return allowed("IngressController operation is allowed").with_uid(request.uid)

    def sync_set_label_selector(self, base: LabelSelector) -> LabelSelector:
        """Restrict deployment to clusters without legacy ingress support."""
        requirement = LabelSelectorRequirement(
            key=LEGACY_INGRESS_SUPPORT_FEATURE_FLAG,
            operator=LabelSelectorOperator.IN,
            values=("false",),
        )
        return replace(base, match_expressions=(*base.match_expressions, requirement))