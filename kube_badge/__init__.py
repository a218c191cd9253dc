"""
kube-badge - Kubernetes health badges.

Queries the cluster for pod and node health and serves the result as
shields.io endpoint badge documents.
"""

__version__ = "0.3.0"
