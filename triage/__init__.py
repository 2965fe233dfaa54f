"""kube-triage: analyze failing Kubernetes objects, optionally explain them and draft fixed manifests."""

__version__ = "0.1.0"
