"""
Provisioning, reset and teardown of a single-node CKS practice cluster.
"""
from .provision import build_create_steps, create_cluster
from .reset import build_reset_steps, reset_cluster
from .destroy import build_destroy_steps, destroy_cluster

__all__ = [
    'build_create_steps',
    'create_cluster',
    'build_reset_steps',
    'reset_cluster',
    'build_destroy_steps',
    'destroy_cluster',
]
