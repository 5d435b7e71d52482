"""
Kubedeploy - Kubernetes Deployment API

HTTP management of Deployments plus a live change feed over Server-Sent Events.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- validation: Namespace and resource name checks
- gateway: Access to the Kubernetes API (CRUD, scale, pods, watch)
- watch: Change translation, stream sessions and SSE framing
- api: REST API interface, read models and error taxonomy
"""

__version__ = "1.0.0"
