"""Admission review data model and the interface shared by all webhooks."""

from __future__ import annotations

import abc
import json
from dataclasses import dataclass, field, replace
from enum import Enum
from http import HTTPStatus
from typing import Any, ClassVar, Mapping


class Operation(str, Enum):
    """Operation carried by an admission request, or matched by a rule."""

    ALL = "*"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CONNECT = "CONNECT"


class FailurePolicy(str, Enum):
    """How the API server reacts when the webhook cannot be reached."""

    IGNORE = "Ignore"
    FAIL = "Fail"


class MatchPolicy(str, Enum):
    """How requests are matched against a webhook's rules."""

    EXACT = "Exact"
    EQUIVALENT = "Equivalent"


class SideEffectClass(str, Enum):
    """Side effects a webhook may have."""

    UNKNOWN = "Unknown"
    NONE = "None"
    SOME = "Some"
    NONE_ON_DRY_RUN = "NoneOnDryRun"


class Scope(str, Enum):
    """Resource scope a rule applies to."""

    ALL = "*"
    CLUSTER = "Cluster"
    NAMESPACED = "Namespaced"


class LabelSelectorOperator(str, Enum):
    """Operator of a label selector requirement."""

    IN = "In"
    NOT_IN = "NotIn"
    EXISTS = "Exists"
    DOES_NOT_EXIST = "DoesNotExist"


class DecodeError(ValueError):
    """Raised when an object embedded in a request cannot be decoded."""


@dataclass
class UserInfo:
    """Identity of the user making a request."""

    username: str = ""
    uid: str = ""
    groups: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class GroupVersionKind:
    """API group, version and kind of an object."""

    group: str = ""
    version: str = ""
    kind: str = ""


@dataclass
class AdmissionRequest:
    """An admission request as received from the API server."""

    uid: str = ""
    kind: GroupVersionKind = field(default_factory=GroupVersionKind)
    request_kind: GroupVersionKind | None = None
    name: str = ""
    namespace: str = ""
    operation: Operation | None = None
    user_info: UserInfo = field(default_factory=UserInfo)
    object: bytes = b""
    old_object: bytes = b""

    def decode_object(self) -> dict[str, Any]:
        """Decode the new object carried by the request."""
        return _decode(self.object)

    def decode_old_object(self) -> dict[str, Any]:
        """Decode the previous object carried by the request."""
        return _decode(self.old_object)


def _decode(raw: bytes) -> dict[str, Any]:
    if not raw:
        raise DecodeError("there is no content to decode")
    try:
        value = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise DecodeError(str(exc)) from exc
    if not isinstance(value, dict):
        raise DecodeError("object is not a JSON mapping")
    return value


@dataclass(frozen=True)
class Status:
    """Result details attached to a response."""

    code: int
    message: str = ""
    reason: str = ""


@dataclass(frozen=True)
class AdmissionResponse:
    """Answer to an admission request."""

    allowed: bool
    result: Status
    uid: str = ""

    def with_uid(self, uid: str) -> AdmissionResponse:
        """Return a copy of the response tagged with the request's UID."""
        return replace(self, uid=uid)


def _validation_response(is_allowed: bool, message: str) -> AdmissionResponse:
    if is_allowed:
        status = Status(code=HTTPStatus.OK, message=message)
    else:
        status = Status(
            code=HTTPStatus.FORBIDDEN,
            message=message,
            reason=HTTPStatus.FORBIDDEN.phrase,
        )
    return AdmissionResponse(allowed=is_allowed, result=status)


def allowed(message: str) -> AdmissionResponse:
    """Build a response that admits the request."""
    return _validation_response(True, message)


def denied(message: str) -> AdmissionResponse:
    """Build a response that rejects the request."""
    return _validation_response(False, message)


def errored(code: int, error: BaseException | str) -> AdmissionResponse:
    """Build a response that rejects the request because of an error."""
    return AdmissionResponse(allowed=False, result=Status(code=int(code), message=str(error)))


def webhook_response(request: AdmissionRequest, is_allowed: bool, reason: str) -> AdmissionResponse:
    """Build an allow or deny response tagged with the request's UID."""
    return _validation_response(is_allowed, reason).with_uid(request.uid)


@dataclass(frozen=True)
class Rule:
    """Resources a webhook is registered for."""

    api_groups: tuple[str, ...]
    api_versions: tuple[str, ...]
    resources: tuple[str, ...]
    scope: Scope = Scope.ALL


@dataclass(frozen=True)
class RuleWithOperations:
    """A rule together with the operations it matches."""

    operations: tuple[Operation, ...]
    rule: Rule


@dataclass(frozen=True)
class LabelSelectorRequirement:
    """One expression of a label selector."""

    key: str
    operator: LabelSelectorOperator
    values: tuple[str, ...] = ()


@dataclass(frozen=True)
class LabelSelector:
    """Selector over object labels."""

    match_labels: Mapping[str, str] = field(default_factory=dict)
    match_expressions: tuple[LabelSelectorRequirement, ...] = ()


class Webhook(abc.ABC):
    """A validating admission webhook and its registration settings."""

    name: ClassVar[str]
    uri: ClassVar[str]
    doc: ClassVar[str]
    timeout_seconds: ClassVar[int] = 2
    failure_policy: ClassVar[FailurePolicy] = FailurePolicy.IGNORE
    match_policy: ClassVar[MatchPolicy] = MatchPolicy.EQUIVALENT
    side_effects: ClassVar[SideEffectClass] = SideEffectClass.NONE
    rules: ClassVar[tuple[RuleWithOperations, ...]] = ()
    object_selector: ClassVar[LabelSelector | None] = None
    classic_enabled: ClassVar[bool] = True
    hypershift_enabled: ClassVar[bool] = False

    @abc.abstractmethod
    def validate(self, request: AdmissionRequest) -> bool:
        """Whether the request is well formed for this webhook."""

    @abc.abstractmethod
    def authorized(self, request: AdmissionRequest) -> AdmissionResponse:
        """Decide whether the request is admitted."""

    def sync_set_label_selector(self, base: LabelSelector) -> LabelSelector:
        """Label selector for deployment, derived from the default one."""
        return base