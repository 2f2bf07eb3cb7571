"""cksctl - single-node Kubernetes lab provisioning for CKS study."""

__version__ = "0.1.0"
