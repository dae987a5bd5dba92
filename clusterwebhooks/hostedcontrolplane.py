"""Webhook restricting deletion of HostedControlPlane resources."""

from __future__ import annotations

import logging
from dataclasses import replace

from clusterwebhooks.admission import (
    AdmissionRequest,
    AdmissionResponse,
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
)

WEBHOOK_NAME = "hostedcontrolplane-validation"
DOC_STRING = (
    "Validates HostedControlPlane deletion operations are only performed "
    "by authorized service accounts"
)

ALLOWED_SERVICE_ACCOUNT_USERNAMES = (
    "system:serviceaccount:open-cluster-management-agent:klusterlet-work-sa",
    "system:serviceaccount:kube-system:generic-garbage-collector",
    "system:serviceaccount:hypershift:operator",
)
ALLOWED_SERVICE_ACCOUNT_NAMES = (
    "cluster-api",
    "control-plane-pki-operator",
)

_AUTHORIZED_MESSAGE = "Service account is authorized to delete HostedControlPlane resources"

_log = logging.getLogger(WEBHOOK_NAME)


class HostedControlPlaneWebhook(Webhook):
    """Allows only trusted service accounts to delete HostedControlPlanes."""

    name = WEBHOOK_NAME
    uri = "/hostedcontrolplane-validation"
    doc = DOC_STRING
    timeout_seconds = 2
    failure_policy = FailurePolicy.IGNORE
    match_policy = MatchPolicy.EQUIVALENT
    side_effects = SideEffectClass.NONE
    object_selector = None
    classic_enabled = True
    hypershift_enabled = False
    rules = (
        RuleWithOperations(
            operations=(Operation.DELETE,),
            rule=Rule(
                api_groups=("hypershift.openshift.io",),
                api_versions=("*",),
                resources=("hostedcontrolplanes",),
                scope=Scope.NAMESPACED,
            ),
        ),
    )

    def validate(self, request: AdmissionRequest) -> bool:
        """Check that the request names a user and a HostedControlPlane."""
        return (
            request.user_info.username != ""
            and request.kind.kind == "HostedControlPlane"
            and request.kind.group == "hypershift.openshift.io"
        )

    def authorized(self, request: AdmissionRequest) -> AdmissionResponse:
        """Admit the request unless an untrusted user deletes a control plane."""
        username = request.user_info.username
        if username in ALLOWED_SERVICE_ACCOUNT_USERNAMES:
            return allowed(_AUTHORIZED_MESSAGE).with_uid(request.uid)

        if username.split(":")[-1] in ALLOWED_SERVICE_ACCOUNT_NAMES:
            return allowed(_AUTHORIZED_MESSAGE).with_uid(request.uid)

        if request.operation != Operation.DELETE:
            return allowed("Only DELETE operations are restricted").with_uid(request.uid)

        _log.info(
            "Unauthorized attempt to delete HostedControlPlane user=%s groups=%s",
            username,
            request.user_info.groups,
        )
        accounts = ", ".join(ALLOWED_SERVICE_ACCOUNT_USERNAMES + ALLOWED_SERVICE_ACCOUNT_NAMES)
        return denied(
            f"Only authorized service accounts {accounts} can delete HostedControlPlane resources"
        ).with_uid(request.uid)

    def sync_set_label_selector(self, base: LabelSelector) -> LabelSelector:
        """Restrict deployment to management clusters."""
        requirement = LabelSelectorRequirement(
            key="ext-hypershift.openshift.io/cluster-type",
            operator=LabelSelectorOperator.IN,
            values=("management-cluster",),
        )
        return replace(base, match_expressions=(*base.match_expressions, requirement))