"""Control requests and the suspend/resume primitive.

Provides the request taxonomy, the Suspendable driver and tool-facing helpers.
"""

from .handlers import request_confirmation, request_input
from .requests import (
    Confirmation,
    ControlRequest,
    ControlResponse,
    SubAgentQuery,
    SyncBehavior,
    UserInput,
    sync_response,
)
from .suspension import (
    ComputationState,
    Suspendable,
    current_computation,
    ensure_context,
    in_driven_context,
    suspend,
)

__all__ = [
    "ComputationState",
    "Confirmation",
    "ControlRequest",
    "ControlResponse",
    "SubAgentQuery",
    "Suspendable",
    "SyncBehavior",
    "UserInput",
    "current_computation",
    "ensure_context",
    "in_driven_context",
    "request_confirmation",
    "request_input",
    "suspend",
    "sync_response",
]
