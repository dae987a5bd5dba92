"""Webhook restricting changes to the cluster ingress configuration."""

from __future__ import annotations

import re

from clusterwebhooks.admission import (
    AdmissionRequest,
    AdmissionResponse,
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
)

WEBHOOK_NAME = "ingress-config-validation"
DOC_STRING = (
    "Managed OpenShift customers may not modify ingress config resources because "
    "it can can degrade cluster operators and can interfere with OpenShift SRE monitoring."
)

# Groups of service accounts living in namespaces managed by the platform.
PRIVILEGED_SERVICE_ACCOUNT_GROUPS = (
    r"^system:serviceaccounts:(kube-.*|openshift|openshift-.*|default|redhat-.*|osde2e-[a-z0-9]{5})"
)
PRIVILEGED_USERS = "system:admin"

_privileged_service_accounts_re = re.compile(PRIVILEGED_SERVICE_ACCOUNT_GROUPS)
_privileged_users_re = re.compile(PRIVILEGED_USERS)

_ALLOWED_MESSAGE = "Privileged service accounts may access"


class IngressConfigWebhook(Webhook):
    """Allows only privileged accounts to change ingress config resources."""

    name = WEBHOOK_NAME
    uri = "/ingressconfig-validation"
    doc = DOC_STRING
    timeout_seconds = 2
    failure_policy = FailurePolicy.IGNORE
    match_policy = MatchPolicy.EQUIVALENT
    side_effects = SideEffectClass.NONE
    object_selector = None
    classic_enabled = True
    hypershift_enabled = True
    rules = (
        RuleWithOperations(
            operations=(Operation.CREATE, Operation.UPDATE, Operation.DELETE),
            rule=Rule(
                api_groups=("config.openshift.io",),
                api_versions=("*",),
                resources=("ingresses",),
                scope=Scope.CLUSTER,
            ),
        ),
    )

    def validate(self, request: AdmissionRequest) -> bool:
        """Check that the request names a user and an Ingress."""
        return request.user_info.username != "" and request.kind.kind == "Ingress"

    def authorized(self, request: AdmissionRequest) -> AdmissionResponse:
        """Admit privileged service accounts and privileged users only."""
        privileged_group = any(
            _privileged_service_accounts_re.search(group) for group in request.user_info.groups
        )
        privileged_user = _privileged_users_re.search(request.user_info.username) is not None
        if privileged_group or privileged_user:
            return allowed(_ALLOWED_MESSAGE).with_uid(request.uid)
        return denied("Only privileged service accounts may access").with_uid(request.uid)