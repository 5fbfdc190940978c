"""
gRPC API client.

Public entry points:
    APIClient, EndpointClient  - client facade
    Query, QueryOptions        - query inputs
    Flow, FlowState, FlowLogEntry, ShellResult - flow data
"""

from velociraptor_api.api.client import APIClient, EndpointClient
from velociraptor_api.api.flows import Flow, FlowLogEntry, FlowState, ShellResult
from velociraptor_api.api.query import Query, QueryOptions

__all__ = [
    "APIClient",
    "EndpointClient",
    "Flow",
    "FlowLogEntry",
    "FlowState",
    "Query",
    "QueryOptions",
    "ShellResult",
]
