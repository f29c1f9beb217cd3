"""High-level request helpers used by tools.

Inside a driven computation these suspend and return the answer. Outside
one (a plain blocking run) they fall back to the sync-mode answer instead of
raising, so tools written against them work in both modes.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from loopAgent.control.requests import Confirmation, UserInput, sync_response
from loopAgent.control.suspension import in_driven_context, suspend


async def request_input(
    prompt: str,
    *,
    options: Iterable[Any] = (),
    default_value: Any = None,
    timeout: Optional[float] = None,
    context: Optional[Mapping[str, Any]] = None,
) -> Any:
    """Ask the user a question; returns the answer value (or the default in sync mode)."""
    request = UserInput(
        prompt=prompt,
        options=tuple(options),
        default_value=default_value,
        timeout=timeout,
        context=context or {},
    )
    if not in_driven_context():
        return sync_response(request).value
    response = await suspend(request)
    return response.value


async def request_confirmation(
    action: str,
    *,
    description: str = "",
    consequences: Iterable[str] = (),
    reversible: bool = True,
    risk_level: str = "low",
) -> bool:
    """Ask for approval of ``action``; returns whether it was approved."""
    request = Confirmation(
        action=action,
        description=description,
        consequences=tuple(consequences),
        reversible=reversible,
        risk_level=risk_level,
    )
    if not in_driven_context():
        return sync_response(request).approved
    response = await suspend(request)
    return response.approved
