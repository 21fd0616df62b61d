"""lokoctl - manage Lokomotive Kubernetes clusters and their components."""

__version__ = "0.3.0"
