"""Admission validation webhooks for namespaces, ingress, image mirrors, control planes and manifest works."""

__version__ = "0.1.0"

__all__ = [
    "admission",
    "hostedcontrolplane",
    "manifestworks",
    "ingressconfig",
    "ingresscontroller",
    "imagecontentpolicies",
    "namespace",
]