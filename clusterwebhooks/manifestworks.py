"""Webhook restricting deletion of ManifestWork resources."""

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

WEBHOOK_NAME = "manifestworks-validation"
DOC_STRING = (
    "Validates ManifestWorks deletion operations are only performed "
    "by authorized service accounts"
)

ALLOWED_SERVICE_ACCOUNTS = (
    "system:serviceaccount:ocm:ocm",
    "system:serviceaccount:kube-system:generic-garbage-collector",
    "system:serviceaccount:multicluster-engine:ocm-foundation-sa",
    "system:serviceaccount:multicluster-hub:grc-policy-addon-sa",
    "system:serviceaccount:multicluster-engine:managedcluster-import-controller-v2",
    "system:serviceaccount:kube-system:namespace-controller",
)

_log = logging.getLogger(WEBHOOK_NAME)


class ManifestWorksWebhook(Webhook):
    """Allows only trusted service accounts to delete ManifestWorks."""

    name = WEBHOOK_NAME
    uri = "/manifestworks-validation"
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
                api_groups=("work.open-cluster-management.io",),
                api_versions=("*",),
                resources=("manifestworks",),
                scope=Scope.NAMESPACED,
            ),
        ),
    )

    def validate(self, request: AdmissionRequest) -> bool:
        """Check that the request names a user and a ManifestWork."""
        return (
            request.user_info.username != ""
            and request.kind.kind == "ManifestWork"
            and request.kind.group == "work.open-cluster-management.io"
        )

    def authorized(self, request: AdmissionRequest) -> AdmissionResponse:
        """Admit the request unless an untrusted user deletes a ManifestWork."""
        if request.user_info.username in ALLOWED_SERVICE_ACCOUNTS:
            return allowed(
                "Service account is authorized to delete ManifestWork resources"
            ).with_uid(request.uid)

        if request.operation != Operation.DELETE:
            return allowed("Only DELETE operations are restricted").with_uid(request.uid)

        _log.info(
            "Unauthorized attempt to delete ManifestWork user=%s groups=%s",
            request.user_info.username,
            request.user_info.groups,
        )
        accounts = "[" + " ".join(ALLOWED_SERVICE_ACCOUNTS) + "]"
        return denied(
            "Only authorized service accounts can delete ManifestWork resources. "
            f"Allowed service accounts: {accounts}"
        ).with_uid(request.uid)

    def sync_set_label_selector(self, base: LabelSelector) -> LabelSelector:
        """Restrict deployment to service clusters."""
        requirement = LabelSelectorRequirement(
            key="ext-hypershift.openshift.io/cluster-type",
            operator=LabelSelectorOperator.IN,
            values=("service-cluster",),
        )
        return replace(base, match_expressions=(*base.match_expressions, requirement))