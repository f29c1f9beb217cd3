"""Unit tests for the parallel orchestrator and its task/result types."""

import asyncio
import threading

import pytest
from langchain_core.messages import AIMessage
from langchain_core.tools import tool

from loopAgent.agents.registry import AgentRegistry
from loopAgent.agents.schema import AgentTemplate
from loopAgent.orchestration import AgentTask, ParallelOrchestrator, UnitFailure, UnitSuccess
from tests.fakes import ExplodingChatModel, RepeatingChatModel, ScriptedChatModel, final, tool_call


@tool
def add(a: int, b: int) -> int:
    """Add two numbers."""
    return a + b


def echo_model():
    def answer(messages):
        task = messages[1].content.split("\n", 1)[1]
        return AIMessage(
            content=f"echo: {task}",
            usage_metadata={"input_tokens": 10, "output_tokens": 5, "total_tokens": 15},
        )
    return ScriptedChatModel([answer])


class SlowChatModel:
    async def ainvoke(self, messages):
        await asyncio.sleep(1.0)
        return AIMessage(content="too late")


class ConcurrencyMeter:
    """Counts how many units are inside a model call at once, across threads."""

    def __init__(self):
        self.lock = threading.Lock()
        self.active = 0
        self.peak = 0

    def model(self):
        meter = self

        class MeteredModel:
            async def ainvoke(self, messages):
                with meter.lock:
                    meter.active += 1
                    meter.peak = max(meter.peak, meter.active)
                await asyncio.sleep(0.05)
                with meter.lock:
                    meter.active -= 1
                return AIMessage(content="ok")

        return MeteredModel()


@pytest.fixture
def registry():
    return AgentRegistry([
        AgentTemplate(name="echo", model_factory=echo_model),
        AgentTemplate(name="broken", model_factory=ExplodingChatModel),
        AgentTemplate(name="slow", model_factory=SlowChatModel),
        AgentTemplate(
            name="looper",
            model_factory=lambda: RepeatingChatModel(tool_call("add", {"a": 1, "b": 1})),
            tools=(add,),
        ),
    ])


class TestParallelOrchestrator:
    @pytest.mark.asyncio
    async def test_partitions_results_in_input_order(self, registry):
        tasks = [
            AgentTask("echo", "first"),
            AgentTask("broken", "second"),
            AgentTask("echo", "third"),
            AgentTask("broken", "fourth"),
            AgentTask("echo", "fifth"),
        ]

        result = await ParallelOrchestrator(registry, max_concurrent=3).run_parallel(tasks)

        assert result.total_count == 5
        assert result.success_count == 3 and result.failure_count == 2
        assert not result.all_success and result.any_success
        assert result.outputs == ("echo: first", "echo: third", "echo: fifth")
        assert [f.task_id for f in result.failed] == [tasks[1].task_id, tasks[3].task_id]
        assert all(isinstance(r, UnitSuccess) for r in result.succeeded)

    @pytest.mark.asyncio
    async def test_failure_is_classified_not_raised(self, registry):
        result = await ParallelOrchestrator(registry).run_parallel([AgentTask("broken", "x")])
        failure = result.failed[0]
        assert isinstance(failure, UnitFailure)
        assert failure.error_kind == "ModelInvocationError"
        assert "Too many requests" in failure.error_message
        assert result.errors[0].startswith("ModelInvocationError: ")

    @pytest.mark.asyncio
    async def test_timeout_reported_as_failure(self, registry):
        tasks = [AgentTask("slow", "wait", timeout=0.2), AgentTask("echo", "quick")]
        result = await ParallelOrchestrator(registry).run_parallel(tasks)
        assert result.outputs == ("echo: quick",)
        assert result.failed[0].error_kind == "TimeoutError"

    @pytest.mark.asyncio
    async def test_max_steps_is_a_failure(self, registry):
        task = AgentTask("looper", "keep adding", config={"max_steps": 2})
        result = await ParallelOrchestrator(registry).run_single(task)
        assert not result.success
        assert result.error_kind == "MaxStepsReached"
        assert result.steps_taken == 2

    @pytest.mark.asyncio
    async def test_unknown_agent_rejected_before_any_unit_runs(self, registry):
        with pytest.raises(KeyError):
            await ParallelOrchestrator(registry).run_parallel([AgentTask("echo", "a"), AgentTask("ghost", "b")])

    def test_shared_model_template_rejected_before_any_unit_runs(self):
        shared = ScriptedChatModel([final("a"), final("b")])
        registry = AgentRegistry([AgentTemplate(name="shared", model=shared)])

        with pytest.raises(ValueError, match="model_factory"):
            ParallelOrchestrator(registry).run_parallel_sync([AgentTask("shared", str(i)) for i in range(3)])
        assert shared.calls == []

    def test_shared_model_in_managed_agent_rejected(self):
        helper = AgentTemplate(name="helper", model=ScriptedChatModel([final("x")]))
        lead = AgentTemplate(name="lead", model_factory=echo_model, managed_agents=(helper,))

        with pytest.raises(ValueError, match="helper"):
            ParallelOrchestrator(AgentRegistry([lead])).run_parallel_sync([AgentTask("lead", "go")])

    def test_units_get_their_own_models(self):
        built = []

        def counting_model():
            model = ScriptedChatModel([final("mine")])
            built.append(model)
            return model

        registry = AgentRegistry([AgentTemplate(name="own", model_factory=counting_model)])
        result = ParallelOrchestrator(registry).run_parallel_sync([AgentTask("own", str(i)) for i in range(3)])

        assert result.outputs == ("mine", "mine", "mine")
        assert len(built) == 3
        assert all(len(model.calls) == 1 for model in built)

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self):
        meter = ConcurrencyMeter()
        registry = AgentRegistry([AgentTemplate(name="meter", model_factory=meter.model)])
        tasks = [AgentTask("meter", f"task {i}") for i in range(6)]

        result = await ParallelOrchestrator(registry, max_concurrent=2).run_parallel(tasks)

        assert result.success_count == 6
        assert meter.peak <= 2

    @pytest.mark.asyncio
    async def test_token_usage_aggregated(self, registry):
        result = await ParallelOrchestrator(registry).run_parallel([AgentTask("echo", "a"), AgentTask("echo", "b")])
        assert result.total_tokens == 30
        assert result.total_steps == 2

    def test_sync_entry_point(self, registry):
        result = ParallelOrchestrator(registry).run_parallel_sync([AgentTask("echo", "hello")])
        assert result.all_success
        assert result.succeeded[0].trace_id

    def test_invalid_concurrency(self, registry):
        with pytest.raises(ValueError):
            ParallelOrchestrator(registry, max_concurrent=-1)


class TestTaskImmutability:
    def test_task_config_cannot_be_mutated(self):
        overrides = {"max_steps": 3, "tags": ["a"]}
        task = AgentTask("echo", {"question": "hi"}, config=overrides)

        with pytest.raises(TypeError):
            task.config["max_steps"] = 10
        with pytest.raises(TypeError):
            task.prompt["question"] = "changed"

        overrides["max_steps"] = 99
        assert task.config["max_steps"] == 3
        assert task.config["tags"] == ("a",)

    def test_prompt_text(self):
        assert AgentTask("echo", "plain").prompt_text == "plain"
        assert "question" in AgentTask("echo", {"question": "hi"}).prompt_text

    def test_ids_are_unique(self):
        assert AgentTask("echo", "a").task_id != AgentTask("echo", "a").task_id


class TestRegistry:
    def test_duplicate_rejected(self):
        registry = AgentRegistry([AgentTemplate(name="a")])
        with pytest.raises(ValueError):
            registry.register(AgentTemplate(name="a"))
        registry.register(AgentTemplate(name="a", description="new"), replace=True)
        assert registry.get("a").description == "new"

    def test_lookup(self):
        registry = AgentRegistry([AgentTemplate(name="a", description="does a")])
        assert "a" in registry and len(registry) == 1
        assert registry.get_optional("b") is None
        with pytest.raises(KeyError):
            registry.get("b")
        registry.unregister("a")
        assert registry.names() == []
