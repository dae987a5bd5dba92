from clusterwebhooks.admission import (
    AdmissionRequest,
    FailurePolicy,
    GroupVersionKind,
    LabelSelector,
    LabelSelectorOperator,
    LabelSelectorRequirement,
    MatchPolicy,
    Operation,
    Rule,
    RuleWithOperations,
    Scope,
    SideEffectClass,
    UserInfo,
)
from clusterwebhooks.ingressconfig import IngressConfigWebhook

import pytest


@pytest.mark.parametrize(
    "user_info, expect_allowed",
    [
        (UserInfo(groups=["system:serviceaccounts:openshift-backplane-srep"]), True),
        (UserInfo(username="system:admin"), True),
        (UserInfo(groups=[]), False),
    ],
    ids=["privileged-account", "system-admin", "non-privileged"],
)
def test_authorized(user_info, expect_allowed):
    response = IngressConfigWebhook().authorized(AdmissionRequest(uid="abc", user_info=user_info))
    assert response.allowed is expect_allowed
    assert response.uid == "abc"


def test_denied_response_is_forbidden():
    response = IngressConfigWebhook().authorized(
        AdmissionRequest(user_info=UserInfo(username="someone", groups=["dedicated-admins"]))
    )
    assert response.result.code == 403


def test_unprivileged_service_account_group_denied():
    response = IngressConfigWebhook().authorized(
        AdmissionRequest(user_info=UserInfo(username="x", groups=["system:serviceaccounts:unpriv-ns"]))
    )
    assert response.allowed is False


def test_get_uri():
    assert IngressConfigWebhook().uri == "/ingressconfig-validation"


@pytest.mark.parametrize(
    "request_, expect_valid",
    [
        (AdmissionRequest(user_info=UserInfo(username=""), kind=GroupVersionKind(kind="Ingress")), False),
        (AdmissionRequest(user_info=UserInfo(username="test")), False),
        (AdmissionRequest(user_info=UserInfo(username="test"), kind=GroupVersionKind(kind="Ingress")), True),
    ],
    ids=["no-username", "no-kind", "valid"],
)
def test_validate(request_, expect_valid):
    assert IngressConfigWebhook().validate(request_) is expect_valid


def test_name():
    assert IngressConfigWebhook().name == "ingress-config-validation"


def test_failure_policy():
    assert IngressConfigWebhook().failure_policy == FailurePolicy.IGNORE


def test_match_policy():
    assert IngressConfigWebhook().match_policy == MatchPolicy.EQUIVALENT


def test_rules():
    expected = (
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
    assert IngressConfigWebhook().rules == expected


def test_object_selector():
    assert IngressConfigWebhook().object_selector is None


def test_side_effects():
    assert IngressConfigWebhook().side_effects == SideEffectClass.NONE


def test_timeout_seconds():
    assert IngressConfigWebhook().timeout_seconds == 2


def test_doc():
    assert len(IngressConfigWebhook().doc) > 0


def test_sync_set_label_selector_is_default():
    base = LabelSelector(
        match_expressions=(
            LabelSelectorRequirement(key="api.openshift.com/managed", operator=LabelSelectorOperator.IN, values=("true",)),
        )
    )
    assert IngressConfigWebhook().sync_set_label_selector(base) == base


def test_hypershift_enabled():
    assert IngressConfigWebhook().hypershift_enabled is True