"""Unit tests for the control-request taxonomy and sync-mode answers."""

import dataclasses

import pytest

from loopAgent.control.requests import (
    Confirmation,
    ControlRequest,
    ControlResponse,
    SubAgentQuery,
    SyncBehavior,
    UserInput,
    sync_response,
)
from loopAgent.utils.error_handler import ProtocolViolationError


class TestRequestVariants:
    def test_each_request_gets_unique_id(self):
        first = UserInput(prompt="Which city?")
        second = UserInput(prompt="Which city?")
        assert first.id != second.id
        assert first.created_at > 0

    def test_requests_are_frozen(self):
        request = UserInput(prompt="Which city?", context={"hint": ["a", "b"]})
        with pytest.raises(dataclasses.FrozenInstanceError):
            request.prompt = "changed"
        with pytest.raises(TypeError):
            request.context["hint"] = "x"
        assert request.context["hint"] == ("a", "b")

    def test_sync_behaviors(self):
        assert UserInput(prompt="q").sync_behavior is SyncBehavior.DEFAULT
        assert Confirmation(action="write_file").sync_behavior is SyncBehavior.APPROVE
        assert Confirmation(action="delete_db", reversible=False).sync_behavior is SyncBehavior.DENY

    def test_payload_carries_rendering_context(self):
        request = UserInput(prompt="Pick one", options=["a", "b"], default_value="a", timeout=5)
        payload = request.to_payload()
        assert payload["type"] == "user_input"
        assert payload["options"] == ["a", "b"]
        assert payload["default"] == "a"
        assert payload["timeout"] == 5
        assert "options: a, b" in payload["question"]


class TestSubAgentQuery:
    def _wrap(self, request, *names):
        for depth, name in reversed(list(enumerate(names, start=1))):
            request = SubAgentQuery(agent_name=name, query=request.describe(), original=request, depth=depth)
        return request

    def test_chain_lists_layers_outermost_first(self):
        inner = UserInput(prompt="Which city?")
        wrapped = self._wrap(inner, "mid", "leaf")

        assert [layer.agent_name for layer in wrapped.chain()] == ["mid", "leaf"]
        assert wrapped.agent_path == ("mid", "leaf")
        assert wrapped.innermost() is inner
        assert wrapped.chain()[-1].original_id == inner.id

    def test_sync_behavior_follows_innermost(self):
        irreversible = Confirmation(action="drop_table", reversible=False)
        assert self._wrap(irreversible, "a").sync_behavior is SyncBehavior.DENY

    def test_payload_nests_original(self):
        inner = UserInput(prompt="Which city?")
        payload = self._wrap(inner, "leaf").to_payload()
        assert payload["context"]["original_id"] == inner.id
        assert payload["context"]["original"]["question"] == "Which city?"


class TestControlResponse:
    def test_factories(self):
        request = Confirmation(action="send_email")
        assert ControlResponse.approve(request).approved
        denied = ControlResponse.deny(request, "not now")
        assert not denied.approved and denied.value == "not now"
        assert ControlResponse.respond(request.id, 42).request_id == request.id

    def test_response_value_is_frozen(self):
        response = ControlResponse.respond("id-1", {"cities": ["Paris"]})
        with pytest.raises(TypeError):
            response.value["cities"] = []


class TestSyncResponse:
    def test_user_input_gets_default(self):
        request = UserInput(prompt="Which city?", default_value="Paris")
        response = sync_response(request)
        assert response.request_id == request.id
        assert response.value == "Paris"

    def test_reversible_confirmation_approved(self):
        assert sync_response(Confirmation(action="write_file")).approved

    def test_irreversible_confirmation_denied(self):
        assert not sync_response(Confirmation(action="rm", reversible=False)).approved

    def test_reversible_denied_when_auto_approve_disabled(self, monkeypatch):
        monkeypatch.setenv("AUTO_APPROVE_REVERSIBLE", "false")
        assert not sync_response(Confirmation(action="write_file")).approved

    def test_wrapper_answered_with_inner_default(self):
        inner = UserInput(prompt="Which city?", default_value="Rome")
        wrapper = SubAgentQuery(agent_name="leaf", query="Which city?", original=inner)
        response = sync_response(wrapper)
        assert response.request_id == wrapper.id
        assert response.value == "Rome"

    def test_unknown_variant_is_protocol_violation(self):
        @dataclasses.dataclass(frozen=True, kw_only=True)
        class Mystery(ControlRequest):
            pass

        with pytest.raises(ProtocolViolationError):
            sync_response(Mystery())
