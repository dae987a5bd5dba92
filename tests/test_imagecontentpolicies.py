import json
from http import HTTPStatus

import pytest

from clusterwebhooks.admission import (
    AdmissionRequest,
    FailurePolicy,
    GroupVersionKind,
    Operation,
    Scope,
)
from clusterwebhooks.imagecontentpolicies import (
    ImageContentPoliciesWebhook,
    authorize_image_content_source_policy,
    authorize_image_digest_mirror_set,
    authorize_image_tag_mirror_set,
    is_unauthorized_mirror,
)


def _spec(field, sources):
    return {"spec": {field: [{"source": s} for s in sources]}}


@pytest.mark.parametrize(
    "sources, expected",
    [
        (["quay.io", "quay.io/something"], False),
        (["registry.redhat.io"], False),
        (["registry.access.redhat.com", "registry.access.redhat.com/something"], False),
        (["registry.redhat.io/something", "example.com"], True),
    ],
)
def test_authorize_image_digest_mirror_set(sources, expected):
    assert authorize_image_digest_mirror_set(_spec("imageDigestMirrors", sources)) is expected


@pytest.mark.parametrize(
    "sources, expected",
    [
        (["quay.io", "quay.io/something"], False),
        (["registry.redhat.io"], False),
        (["registry.access.redhat.com", "registry.access.redhat.com/something"], False),
        (["registry.redhat.io/something", "example.com"], True),
    ],
)
def test_authorize_image_tag_mirror_set(sources, expected):
    assert authorize_image_tag_mirror_set(_spec("imageTagMirrors", sources)) is expected


@pytest.mark.parametrize(
    "sources, expected",
    [
        (["quay.io", "quay.io/something"], False),
        (["registry.redhat.io/something", "registry.redhat.io"], False),
        (["registry.access.redhat.com", "registry.access.redhat.com/something"], False),
        (["example.com"], True),
    ],
)
def test_authorize_image_content_source_policy(sources, expected):
    assert (
        authorize_image_content_source_policy(_spec("repositoryDigestMirrors", sources))
        is expected
    )


@pytest.mark.parametrize(
    "source, expected",
    [
        ("quay.io", True),
        ("quay.io/org/repo", True),
        ("quay.iox", False),
        ("registry.redhat.io", True),
        ("registry.redhat.io/something", False),
        ("registry.access.redhat.com", True),
        ("example.com", False),
    ],
)
def test_is_unauthorized_mirror(source, expected):
    assert is_unauthorized_mirror(source) is expected


def test_empty_spec_is_authorized():
    assert authorize_image_digest_mirror_set({}) is True


IDMS_GVK = GroupVersionKind("config.openshift.io", "v1", "ImageDigestMirrorSet")
ITMS_GVK = GroupVersionKind("config.openshift.io", "v1", "ImageTagMirrorSet")
ICSP_GVK = GroupVersionKind("operator.openshift.io", "v1alpha1", "ImageContentSourcePolicy")

_FIELDS = {
    "ImageDigestMirrorSet": ("config.openshift.io/v1", "imageDigestMirrors"),
    "ImageTagMirrorSet": ("config.openshift.io/v1", "imageTagMirrors"),
    "ImageContentSourcePolicy": ("operator.openshift.io/v1alpha1", "repositoryDigestMirrors"),
}


def _raw(kind, source):
    api_version, field = _FIELDS[kind]
    return json.dumps(
        {
            "apiVersion": api_version,
            "kind": kind,
            "metadata": {"name": "test"},
            "spec": {field: [{"source": source}]},
        }
    ).encode()


@pytest.mark.parametrize(
    "name, gvk, obj_source, old_source, is_allowed",
    [
        ("allowed-creation-idms", IDMS_GVK, "example.com", None, True),
        ("authorized-update-idms", IDMS_GVK, "example.com", "registry.access.redhat.com", True),
        ("unauthorized-creation-idms", IDMS_GVK, "quay.io", None, False),
        ("unauthorized-update-idms", IDMS_GVK, "registry.redhat.io", "example.com", False),
        ("allowed-creation-itms", ITMS_GVK, "example.com", None, True),
        ("authorized-update-itms", ITMS_GVK, "example.com", "registry.access.redhat.com", True),
        ("unauthorized-creation-itms", ITMS_GVK, "quay.io", None, False),
        ("unauthorized-update-itms", ITMS_GVK, "registry.redhat.io", "example.com", False),
        ("allowed-creation-icsp", ICSP_GVK, "example.com", None, True),
        ("authorized-update-icp", ICSP_GVK, "example.com", "registry.access.redhat.com", True),
        ("unauthorized-creation-icp", ICSP_GVK, "quay.io", None, False),
        ("unauthorized-update-icp", ICSP_GVK, "registry.redhat.io", "example.com", False),
    ],
)
def test_image_content_policy(name, gvk, obj_source, old_source, is_allowed):
    hook = ImageContentPoliciesWebhook()
    request = AdmissionRequest(
        uid=name,
        kind=gvk,
        request_kind=gvk,
        operation=Operation.CREATE,
        object=_raw(gvk.kind, obj_source),
        old_object=_raw(gvk.kind, old_source) if old_source else b"",
    )
    response = hook.authorized(request)
    assert response.allowed is is_allowed
    assert response.uid == name
    expected_code = HTTPStatus.OK if is_allowed else HTTPStatus.FORBIDDEN
    assert response.result.code == expected_code
    assert hook.hypershift_enabled is False


@pytest.mark.parametrize(
    "gvk, operation, source, old_source, expected",
    [
        (IDMS_GVK, Operation.CREATE, "registry.redhat.io", None, False),
        (IDMS_GVK, Operation.CREATE, "example.com", None, True),
        (ITMS_GVK, Operation.CREATE, "registry.redhat.io", None, False),
        (ITMS_GVK, Operation.CREATE, "example.com", None, True),
        (ICSP_GVK, Operation.UPDATE, "registry.access.redhat.com", "example.com", False),
        (ICSP_GVK, Operation.CREATE, "registry.access.redhat.com", None, False),
        (ICSP_GVK, Operation.CREATE, "example.com", None, True),
    ],
)
def test_authorized(gvk, operation, source, old_source, expected):
    hook = ImageContentPoliciesWebhook()
    request = AdmissionRequest(
        uid="uid123",
        kind=gvk,
        request_kind=gvk,
        name="test",
        operation=operation,
        object=_raw(gvk.kind, source),
        old_object=_raw(gvk.kind, old_source) if old_source else b"",
    )
    actual = hook.authorized(request).allowed if hook.validate(request) else False
    assert actual is expected


def test_invalid_request_is_not_validated():
    hook = ImageContentPoliciesWebhook()
    request = AdmissionRequest(name="test", operation=Operation.UPDATE, object=b"")
    assert hook.validate(request) is False


def test_validate_rejects_other_kinds():
    hook = ImageContentPoliciesWebhook()
    request = AdmissionRequest(
        kind=GroupVersionKind("", "v1", "Pod"), object=b'{"kind": "Pod"}'
    )
    assert hook.validate(request) is False


def test_undecodable_object_is_bad_request():
    hook = ImageContentPoliciesWebhook()
    request = AdmissionRequest(
        uid="uid123", kind=IDMS_GVK, request_kind=IDMS_GVK, object=b"{not json"
    )
    response = hook.authorized(request)
    assert response.allowed is False
    assert response.result.code == HTTPStatus.BAD_REQUEST


def test_malformed_spec_is_bad_request():
    hook = ImageContentPoliciesWebhook()
    request = AdmissionRequest(
        uid="uid123",
        kind=IDMS_GVK,
        request_kind=IDMS_GVK,
        object=json.dumps({"spec": {"imageDigestMirrors": "quay.io"}}).encode(),
    )
    assert hook.authorized(request).result.code == HTTPStatus.BAD_REQUEST


def test_unhandled_kind_is_allowed():
    hook = ImageContentPoliciesWebhook()
    gvk = GroupVersionKind("", "v1", "Pod")
    request = AdmissionRequest(uid="u", kind=gvk, request_kind=gvk, object=b"{}")
    response = hook.authorized(request)
    assert response.allowed is True
    assert response.uid == "u"


def test_kind_used_when_request_kind_missing():
    hook = ImageContentPoliciesWebhook()
    request = AdmissionRequest(uid="u", kind=IDMS_GVK, object=_raw("ImageDigestMirrorSet", "quay.io"))
    assert hook.authorized(request).allowed is False


def test_denial_carries_doc():
    hook = ImageContentPoliciesWebhook()
    request = AdmissionRequest(
        uid="u", kind=ITMS_GVK, request_kind=ITMS_GVK, object=_raw("ImageTagMirrorSet", "quay.io")
    )
    assert hook.authorized(request).result.message == hook.doc


def test_registration_settings():
    hook = ImageContentPoliciesWebhook()
    assert hook.uri == "/imagecontentpolicies-validation"
    assert hook.name == "imagecontentpolicies-validation"
    assert hook.failure_policy == FailurePolicy.FAIL
    assert hook.timeout_seconds == 2
    assert [r.rule.api_groups for r in hook.rules] == [
        ("config.openshift.io",),
        ("operator.openshift.io",),
    ]
    assert all(r.rule.scope == Scope.CLUSTER for r in hook.rules)
    assert all(r.operations == (Operation.CREATE, Operation.UPDATE) for r in hook.rules)