"""
Cluster and component management modules.
"""
from .lifecycle import ApplyOptions, DeleteOptions, DestroyOptions
from .platform import Cluster, Platform, create_cluster

__all__ = [
    'ApplyOptions',
    'DeleteOptions',
    'DestroyOptions',
    'Cluster',
    'Platform',
    'create_cluster',
]
