# clusterwebhooks

Validation rules for Kubernetes admission requests on managed clusters.
Each webhook decides whether a request is well formed (`validate`) and
whether it should be admitted (`authorized`). `authorized` returns an
`AdmissionResponse` holding an `allowed` flag, a `result` status with an
HTTP code and message, and the request's `uid`.

## Webhooks

| Module | Class | Guards |
| --- | --- | --- |
| `clusterwebhooks.hostedcontrolplane` | `HostedControlPlaneWebhook` | deletion of HostedControlPlanes |
| `clusterwebhooks.manifestworks` | `ManifestWorksWebhook` | deletion of ManifestWorks |
| `clusterwebhooks.ingressconfig` | `IngressConfigWebhook` | changes to the cluster ingress config |
| `clusterwebhooks.ingresscontroller` | `IngressControllerWebhook` | IngressControllers tolerating master nodes |
| `clusterwebhooks.imagecontentpolicies` | `ImageContentPoliciesWebhook` | mirror sets that shadow system registries |
| `clusterwebhooks.namespace` | `NamespaceWebhook` | privileged namespaces and protected labels |

Every webhook derives from `clusterwebhooks.admission.Webhook` and carries
its registration settings as attributes: `name`, `uri`, `doc`,
`timeout_seconds`, `failure_policy`, `match_policy`, `side_effects`,
`rules`, `object_selector`, `classic_enabled` and `hypershift_enabled`.
`sync_set_label_selector(base)` takes a `LabelSelector` and returns it,
extended with a match expression for the webhooks that restrict where they
are deployed (hosted control planes, manifest works, ingress controllers).

`clusterwebhooks.admission` also holds the request types
(`AdmissionRequest`, `UserInfo`, `GroupVersionKind`, `Operation`), the
registration types (`RuleWithOperations`, `Rule`, `Scope`, `LabelSelector`,
`LabelSelectorRequirement`, `LabelSelectorOperator`, `FailurePolicy`,
`MatchPolicy`, `SideEffectClass`) and the response helpers `allowed`,
`denied`, `errored` and `webhook_response`.

Other helpers:

- `clusterwebhooks.imagecontentpolicies.is_unauthorized_mirror(source)` and
  `authorize_image_digest_mirror_set`, `authorize_image_tag_mirror_set`,
  `authorize_image_content_source_policy`, which take a decoded object.
- `clusterwebhooks.ingresscontroller.is_allowed_user(request)`.
- `clusterwebhooks.namespace.am_i_admin(request)`,
  `protected_labels_in(labels)` and
  `NamespaceWebhook.unauthorized_label_changes(request)`, which returns the
  reason a request breaks the protected-label rules, or `None`.

## Example

```python
from clusterwebhooks.admission import AdmissionRequest, GroupVersionKind, Operation, UserInfo
from clusterwebhooks.manifestworks import ManifestWorksWebhook

hook = ManifestWorksWebhook()
request = AdmissionRequest(
    uid="1234",
    operation=Operation.DELETE,
    kind=GroupVersionKind(group="work.open-cluster-management.io", kind="ManifestWork"),
    user_info=UserInfo(username="unknown-user"),
)

if hook.validate(request):
    response = hook.authorized(request)
    print(response.allowed, response.result.code, response.result.message)
    # False 403 Only authorized service accounts can delete ManifestWork resources. ...
```

Requests carrying an object body hold it as raw JSON bytes in `object`
and `old_object`; `AdmissionRequest.decode_object` and
`AdmissionRequest.decode_old_object` decode them and raise `DecodeError`
on empty or malformed input. When a webhook cannot decode the body it
needs, `authorized` answers with a response carrying code 400 instead of
raising.

## Namespace configuration

`NamespaceWebhook(privileged_namespaces=(), config_map_sources=())` takes
the regular expressions of the platform's privileged namespaces and the
names of the ConfigMaps they come from. No list is built in: with the
defaults no namespace counts as privileged, and only the `com`, `io` and
`in` names and the protected labels are refused to non-admins.

## What this package does not do

It holds the decision logic only. It does not serve HTTP, does not parse
AdmissionReview envelopes, does not register webhooks with a cluster or
write deployment manifests, and has no default label selector of its own:
callers supply the `base` selector and the privileged namespace list.

## Installing and testing

```
pip install .
pip install ".[test]"
pytest
```