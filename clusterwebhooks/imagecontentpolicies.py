"""Webhook preventing image mirror configurations that shadow system registries."""

from __future__ import annotations

import logging
import re
from http import HTTPStatus
from typing import Any, Mapping

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
    errored,
    webhook_response,
)

WEBHOOK_NAME = "imagecontentpolicies-validation"
WEBHOOK_DOC = (
    "Managed OpenShift customers may not create ImageContentSourcePolicy, "
    "ImageDigestMirrorSet, or ImageTagMirrorSet resources that configure mirrors "
    "that would conflict with system registries (e.g. quay.io, registry.redhat.io, "
    "registry.access.redhat.com, etc)."
)

CONFIG_GROUP = "config.openshift.io"
OPERATOR_GROUP = "operator.openshift.io"

IMAGE_DIGEST_MIRROR_SET = "ImageDigestMirrorSet"
IMAGE_TAG_MIRROR_SET = "ImageTagMirrorSet"
IMAGE_CONTENT_SOURCE_POLICY = "ImageContentSourcePolicy"

# registry.redhat.io is blocked only exactly; the others also with any path below them.
UNAUTHORIZED_REPOSITORY_MIRRORS = (
    r"(^registry\.redhat\.io\Z|^quay\.io(/.*)?\Z|^registry\.access\.redhat\.com(/.*)?)"
)
_unauthorized_re = re.compile(UNAUTHORIZED_REPOSITORY_MIRRORS, re.DOTALL)

_log = logging.getLogger(WEBHOOK_NAME)


def is_unauthorized_mirror(source: str) -> bool:
    """Whether a mirror source refers to a protected system registry."""
    return _unauthorized_re.search(source) is not None


def _mirror_sources(obj: Mapping[str, Any], field_name: str) -> list[str]:
    spec = obj.get("spec") or {}
    if not isinstance(spec, Mapping):
        raise DecodeError("spec is not a mapping")
    mirrors = spec.get(field_name) or []
    if not isinstance(mirrors, list):
        raise DecodeError(f"spec.{field_name} is not a list")
    sources = []
    for mirror in mirrors:
        if not isinstance(mirror, Mapping):
            raise DecodeError(f"spec.{field_name} entry is not a mapping")
        source = mirror.get("source") or ""
        if not isinstance(source, str):
            raise DecodeError(f"spec.{field_name} source is not a string")
        sources.append(source)
    return sources


def _authorize(obj: Mapping[str, Any], field_name: str) -> bool:
    return not any(is_unauthorized_mirror(s) for s in _mirror_sources(obj, field_name))


def authorize_image_digest_mirror_set(idms: Mapping[str, Any]) -> bool:
    """Reject an ImageDigestMirrorSet mirroring a protected registry."""
    return _authorize(idms, "imageDigestMirrors")


def authorize_image_tag_mirror_set(itms: Mapping[str, Any]) -> bool:
    """Reject an ImageTagMirrorSet mirroring a protected registry."""
    return _authorize(itms, "imageTagMirrors")


def authorize_image_content_source_policy(icsp: Mapping[str, Any]) -> bool:
    """Reject an ImageContentSourcePolicy mirroring a protected registry."""
    return _authorize(icsp, "repositoryDigestMirrors")


_AUTHORIZERS = {
    IMAGE_DIGEST_MIRROR_SET: authorize_image_digest_mirror_set,
    IMAGE_TAG_MIRROR_SET: authorize_image_tag_mirror_set,
    IMAGE_CONTENT_SOURCE_POLICY: authorize_image_content_source_policy,
}


def _object_name(obj: Mapping[str, Any]) -> str:
    metadata = obj.get("metadata")
    if isinstance(metadata, Mapping):
        return str(metadata.get("name") or "")
    return ""


class ImageContentPoliciesWebhook(Webhook):
    """Denies image mirror resources that conflict with system registries."""

    name = WEBHOOK_NAME
    uri = "/" + WEBHOOK_NAME
    doc = WEBHOOK_DOC
    timeout_seconds = 2
    # Fail closed: a bad mirror configuration has a large impact on the cluster.
    failure_policy = FailurePolicy.FAIL
    match_policy = MatchPolicy.EQUIVALENT
    side_effects = SideEffectClass.NONE
    object_selector = None
    classic_enabled = True
    hypershift_enabled = False
    rules = (
        RuleWithOperations(
            operations=(Operation.CREATE, Operation.UPDATE),
            rule=Rule(
                api_groups=(CONFIG_GROUP,),
                api_versions=("*",),
                resources=("imagedigestmirrorsets", "imagetagmirrorsets"),
                scope=Scope.CLUSTER,
            ),
        ),
        RuleWithOperations(
            operations=(Operation.CREATE, Operation.UPDATE),
            rule=Rule(
                api_groups=(OPERATOR_GROUP,),
                api_versions=("*",),
                resources=("imagecontentsourcepolicies",),
                scope=Scope.CLUSTER,
            ),
        ),
    )

    def validate(self, request: AdmissionRequest) -> bool:
        """Check that the request carries an object of a handled kind."""
        if not request.object:
            return False
        return request.kind.kind in _AUTHORIZERS

    def authorized(self, request: AdmissionRequest) -> AdmissionResponse:
        """Admit the request unless its mirrors shadow a system registry."""
        kind = (request.request_kind or request.kind).kind
        authorize = _AUTHORIZERS.get(kind)
        if authorize is not None:
            try:
                obj = request.decode_object()
                ok = authorize(obj)
            except DecodeError as exc:
                _log.error("failed to render an %s from request: %s", kind, exc)
                return errored(HTTPStatus.BAD_REQUEST, exc)
            if not ok:
                _log.info("denying %s name=%s", kind, _object_name(obj))
                return webhook_response(request, False, WEBHOOK_DOC)
        return webhook_response(request, True, "")