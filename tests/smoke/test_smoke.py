"""Smoke tests for quick validation.

Fast, critical-path checks that every public entry point imports and can
complete one scripted run. Run these before commits to catch obvious breakage.
"""

from pathlib import Path

import pytest
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage


def fake_model(*texts):
    return GenericFakeChatModel(messages=iter([AIMessage(content=t) for t in texts]))


class TestBasicSetup:
    """Package, settings and bundled config"""

    def test_public_api_imports(self):
        import loopAgent

        for name in loopAgent.__all__:
            assert hasattr(loopAgent, name), f"loopAgent.{name} should be exported"

    def test_settings_load(self):
        from loopAgent.config import get_settings

        settings = get_settings()
        assert settings.governance.max_steps > 0
        assert settings.orchestrator.max_concurrent > 0

    def test_approval_rules_bundled(self):
        from loopAgent.hitl.approval_checker import DEFAULT_RULES_PATH

        assert Path(DEFAULT_RULES_PATH).is_file()


class TestEntryPoints:
    """One run through each way of driving an agent"""

    def test_blocking_run(self):
        from loopAgent import RunState, StepAgent

        result = StepAgent("smoke", fake_model("All good.")).run("Say something")
        assert result.state is RunState.SUCCESS
        assert result.output == "All good."

    @pytest.mark.asyncio
    async def test_suspendable_run(self):
        from loopAgent import StepAgent

        comp = StepAgent("smoke", fake_model("Done.")).run_suspendable("Say something")
        result = await comp.start()
        assert comp.done and result.output == "Done."

    def test_parallel_run(self):
        from loopAgent import AgentRegistry, AgentTask, AgentTemplate, ParallelOrchestrator

        registry = AgentRegistry([AgentTemplate(name="smoke", model_factory=lambda: fake_model("ok"))])
        result = ParallelOrchestrator(registry).run_parallel_sync([AgentTask("smoke", "a"), AgentTask("smoke", "b")])
        assert result.all_success
        assert result.outputs == ("ok", "ok")
