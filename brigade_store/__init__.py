"""
brigade-store keeps brigade projects and builds in a Kubernetes namespace.

The library is made of three parts:
  - The store maps projects and builds onto labelled secrets and reads
    workers and jobs from the pods scheduled for a build.
  - The cache mirrors brigade secrets and pods through list and watch so that
    label queries can be answered without a round trip to the cluster.
  - The vacuum deletes builds past an age or beyond a maximum count, along
    with their pods and secrets.
"""

__all__ = [
    "cache",
    "config",
    "exceptions",
    "ids",
    "labels",
    "model",
    "status",
    "store",
    "substrate",
    "vacuum",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
