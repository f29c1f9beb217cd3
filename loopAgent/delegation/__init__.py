"""Delegation frames, spawn policy and request bubbling."""

from .frame import DelegationFrame, SpawnPolicy
from .spawner import DelegationMode, Delegator, unwrap_response, wrap_request

__all__ = [
    "DelegationFrame",
    "DelegationMode",
    "Delegator",
    "SpawnPolicy",
    "unwrap_response",
    "wrap_request",
]
