"""Load Balancer Control Plane Mock for Testing.

This module provides an in-memory implementation of the load balancer
control plane so that lifecycle calls can be tested without network access.

Key Features:
- In-memory load balancers and work requests
- Scripted lifecycle states (ACCEPTED -> SUCCEEDED, CREATING -> ACTIVE, ...)
- "Not found" simulation via the NOT_FOUND script entry
- Error injection per operation

Usage:
    from lb_mock import MockControlPlane, MockLoadBalancerClient

    plane = MockControlPlane()
    plane.create_states = ["CREATING", "ACTIVE"]
    reconciler = LoadBalancerReconciler(MockLoadBalancerClient(plane), poll_interval_seconds=1)
    reconciler.create(data)

    assert plane.call_count("create_load_balancer") == 1
"""

from .control_plane import (
    NOT_FOUND,
    MockControlPlane,
    MockLoadBalancer,
    MockLoadBalancerClient,
    MockWorkRequest,
    StateScript,
    transport_error,
)

__all__ = [
    "NOT_FOUND",
    "MockControlPlane",
    "MockLoadBalancer",
    "MockLoadBalancerClient",
    "MockWorkRequest",
    "StateScript",
    "transport_error",
]
