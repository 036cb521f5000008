"""Load balancer control-plane client.

The reconciler depends only on the LoadBalancerClient protocol. The REST
implementation sends requests through an azure-core pipeline and maps
error responses to azure-core exceptions, so "not found" always surfaces as
ResourceNotFoundError.

Mutations are asynchronous on the control plane: they return the id of a
work request (opc-work-request-id header) that must be polled.

NOTE: The pipeline carries no retry policy. A failed call propagates to the
caller; retrying is the host's decision.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol
from urllib.parse import quote

from azure.core import PipelineClient
from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
    map_error,
)
from azure.core.pipeline.policies import HeadersPolicy, HttpLoggingPolicy, UserAgentPolicy
from azure.core.rest import HttpRequest, HttpResponse

from .errors import InconsistentResponseError
from .models import LoadBalancer, WorkRequest

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)

USER_AGENT = "lb-reconciler/0.1.0"
WORK_REQUEST_ID_HEADER = "opc-work-request-id"

ERROR_MAP: dict[int, type[HttpResponseError]] = {
    401: ClientAuthenticationError,
    404: ResourceNotFoundError,
    409: ResourceExistsError,
}


class LoadBalancerClient(Protocol):
    """Operations the reconciler needs from the control plane."""

    def create_load_balancer(self, payload: dict[str, Any]) -> str:
        """Request creation; returns the work request id."""
        ...

    def update_load_balancer(self, load_balancer_id: str, payload: dict[str, Any]) -> str:
        """Request an update; returns the work request id."""
        ...

    def delete_load_balancer(self, load_balancer_id: str) -> str:
        """Request deletion; returns the work request id."""
        ...

    def get_load_balancer(self, load_balancer_id: str) -> LoadBalancer:
        """Fetch a load balancer; raises ResourceNotFoundError if missing."""
        ...

    def get_work_request(self, work_request_id: str) -> WorkRequest:
        """Fetch the status of a work request."""
        ...


class RestLoadBalancerClient:
    """LoadBalancerClient over HTTP via an azure-core pipeline."""

    def __init__(
        self,
        endpoint: str,
        *,
        authentication_policy: Any | None = None,
        transport: Any | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            endpoint: Base URL of the load balancing API.
            authentication_policy: azure-core policy that signs each request.
            transport: azure-core transport; defaults to the requests transport.
        """
        if not endpoint:
            raise ValueError("endpoint cannot be empty")

        policies = [
            HeadersPolicy({"Accept": "application/json"}),
            UserAgentPolicy(base_user_agent=USER_AGENT),
            authentication_policy,
            HttpLoggingPolicy(),
        ]
        client_kwargs: dict[str, Any] = {
            "policies": [policy for policy in policies if policy is not None],
        }
        if transport is not None:
            client_kwargs["transport"] = transport

        self._client: PipelineClient = PipelineClient(
            base_url=endpoint.rstrip("/"), **client_kwargs
        )

    def close(self) -> None:
        self._client.close()

    def create_load_balancer(self, payload: dict[str, Any]) -> str:
        request = HttpRequest("POST", self._client.format_url("/loadBalancers"), json=payload)
        response = self._send(request, expected=(200, 201, 202, 204))
        return self._work_request_id(response, "create")

    def update_load_balancer(self, load_balancer_id: str, payload: dict[str, Any]) -> str:
        request = HttpRequest("PUT", self._load_balancer_url(load_balancer_id), json=payload)
        response = self._send(request, expected=(200, 202, 204))
        return self._work_request_id(response, "update")

    def delete_load_balancer(self, load_balancer_id: str) -> str:
        request = HttpRequest("DELETE", self._load_balancer_url(load_balancer_id))
        response = self._send(request, expected=(200, 202, 204))
        return self._work_request_id(response, "delete")

    def get_load_balancer(self, load_balancer_id: str) -> LoadBalancer:
        request = HttpRequest("GET", self._load_balancer_url(load_balancer_id))
        response = self._send(request, expected=(200,))
        return LoadBalancer.model_validate(response.json())

    def get_work_request(self, work_request_id: str) -> WorkRequest:
        request = HttpRequest(
            "GET",
            self._client.format_url(
                "/loadBalancerWorkRequests/{workRequestId}",
                workRequestId=quote(work_request_id, safe=""),
            ),
        )
        response = self._send(request, expected=(200,))
        return WorkRequest.model_validate(response.json())

    def _load_balancer_url(self, load_balancer_id: str) -> str:
        return self._client.format_url(
            "/loadBalancers/{loadBalancerId}",
            loadBalancerId=quote(load_balancer_id, safe=""),
        )

    def _send(self, request: HttpRequest, expected: tuple[int, ...]) -> HttpResponse:
        """Send a request and raise azure-core errors for unexpected status codes."""
        response = self._client.send_request(request)
        if response.status_code not in expected:
            logger.debug(
                "Control plane returned an error",
                extra={
                    "method": request.method,
                    "url": request.url,
                    "status_code": response.status_code,
                },
            )
            map_error(status_code=response.status_code, response=response, error_map=ERROR_MAP)
            raise HttpResponseError(response=response)
        return response

    @staticmethod
    def _work_request_id(response: HttpResponse, operation: str) -> str:
        work_request_id = response.headers.get(WORK_REQUEST_ID_HEADER, "")
        if not work_request_id:
            raise InconsistentResponseError(
                f"Load balancer {operation} response carried no {WORK_REQUEST_ID_HEADER} header"
            )
        return work_request_id


def create_client_from_config(config: Config) -> RestLoadBalancerClient:
    """Create a REST client for the configured endpoint."""
    return RestLoadBalancerClient(endpoint=config.endpoint)
