"""Integration tests: requests bubbling through nested delegation, and
delegating agents running side by side as parallel units."""

import asyncio

import pytest
from langchain_core.messages import AIMessage, ToolMessage
from langchain_core.tools import tool

from loopAgent import (
    AgentRegistry,
    AgentTask,
    AgentTemplate,
    ControlResponse,
    ParallelOrchestrator,
    RunState,
    StepAgent,
)
from loopAgent.control.requests import Confirmation, SubAgentQuery, UserInput
from loopAgent.control.suspension import ComputationState
from loopAgent.hitl.approval_checker import ApprovalChecker
from loopAgent.tools.builtin.ask_human import ask_human
from loopAgent.utils.error_handler import ProtocolViolationError
from tests.fakes import ScriptedChatModel, final, last_observation, tool_call


@tool
def book_hotel(city: str, nights: int) -> str:
    """Book a hotel."""
    return f"Booked {nights} night(s) in {city}"


@tool
def delete_booking(booking_id: str) -> str:
    """Cancel and delete a booking."""
    return f"Deleted {booking_id}"


def booker_model():
    """Asks for the city, then the length of stay, then books."""
    def book(messages):
        answers = [m.content.split("\n\n[Step")[0] for m in messages if isinstance(m, ToolMessage)]
        return tool_call("book_hotel", {"city": answers[0], "nights": int(answers[1])})

    return ScriptedChatModel([
        tool_call("ask_human", {"question": "Which city?"}, call_id="q1"),
        tool_call("ask_human", {"question": "How many nights?", "default": "1"}, call_id="q2"),
        book,
        lambda messages: final(last_observation(messages)),
    ])


def relay_model(target):
    def build():
        return ScriptedChatModel([
            tool_call(target, {"task": "Book a hotel for the trip"}),
            lambda messages: final(last_observation(messages).splitlines()[-1]),
        ])
    return build


@pytest.fixture
def travel_agents():
    booker = AgentTemplate(
        name="booker",
        description="Books hotels",
        model_factory=booker_model,
        tools=(ask_human, book_hotel),
    )
    planner = AgentTemplate(
        name="planner",
        description="Plans trips",
        model_factory=relay_model("booker"),
        managed_agents=(booker,),
    )
    assistant = AgentTemplate(
        name="assistant",
        description="Talks to the user",
        model_factory=relay_model("planner"),
        managed_agents=(planner,),
    )
    return assistant


class TestNestedDelegation:
    @pytest.mark.asyncio
    async def test_two_questions_bubble_and_resume_in_place(self, travel_agents):
        comp = travel_agents.instantiate().run_suspendable("Plan my trip")

        first = await comp.start()
        assert isinstance(first, SubAgentQuery)
        assert first.agent_path == ("planner", "booker")
        assert first.innermost().prompt == "Which city?"

        second = await comp.resume(ControlResponse.respond(first, "Lisbon"))
        assert isinstance(second, SubAgentQuery)
        assert second.id != first.id
        assert second.innermost().prompt == "How many nights?"

        result = await comp.resume(ControlResponse.respond(second, "3"))

        assert result.state is RunState.SUCCESS
        assert result.output == "Booked 3 night(s) in Lisbon"
        assert result.agent_name == "assistant"
        assert result.steps_taken == 2

    @pytest.mark.asyncio
    async def test_handler_driven_run(self, travel_agents):
        seen = []

        def handler(request):
            seen.append(request)
            answers = {"Which city?": "Oslo", "How many nights?": "2"}
            return ControlResponse.respond(request, answers[request.innermost().prompt])

        result = await travel_agents.instantiate().arun("Plan my trip", handler)

        assert result.output == "Booked 2 night(s) in Oslo"
        assert [len(r.chain()) for r in seen] == [2, 2]

    def test_blocking_run_uses_defaults(self, travel_agents):
        result = travel_agents.instantiate().run("Plan my trip")
        assert result.success
        # No default for the city: the question comes back unanswered
        assert "night(s) in" in result.output

    @pytest.mark.asyncio
    async def test_stale_answer_aborts_the_chain(self, travel_agents):
        comp = travel_agents.instantiate().run_suspendable("Plan my trip")
        first = await comp.start()
        with pytest.raises(ProtocolViolationError):
            await comp.resume(ControlResponse.respond(first.innermost(), "Lisbon"))
        assert comp.state is ComputationState.CANCELLED


class TestApprovalThroughDelegation:
    @pytest.mark.asyncio
    async def test_irreversible_confirmation_reaches_top(self):
        cleaner = AgentTemplate(
            name="cleaner",
            model_factory=lambda: ScriptedChatModel([
                tool_call("delete_booking", {"booking_id": "B-17"}),
                lambda messages: final(last_observation(messages)),
            ]),
            tools=(delete_booking,),
            approval_checker=ApprovalChecker(),
        )
        boss = AgentTemplate(name="boss", model_factory=relay_model("cleaner"), managed_agents=(cleaner,))

        comp = boss.instantiate().run_suspendable("Clean up old bookings")
        request = await comp.start()

        inner = request.innermost()
        assert isinstance(inner, Confirmation)
        assert inner.action == "delete_booking" and not inner.reversible

        result = await comp.resume(ControlResponse.approve(request))
        assert result.output == "Deleted B-17"


class TestParallelDelegators:
    def test_units_delegate_independently(self):
        def researcher_model():
            return ScriptedChatModel([
                lambda messages: AIMessage(content=f"Findings: {messages[1].content.splitlines()[-1][:40]}"),
            ])

        researcher = AgentTemplate(name="researcher", model_factory=researcher_model)
        lead = AgentTemplate(name="lead", model_factory=relay_model("researcher"), managed_agents=(researcher,))
        registry = AgentRegistry([lead, researcher])

        tasks = [AgentTask("lead", f"Topic {i}") for i in range(4)]
        result = ParallelOrchestrator(registry, max_concurrent=2).run_parallel_sync(tasks)

        assert result.all_success
        assert result.total_steps == 8
        assert all(output.startswith("Findings:") for output in result.outputs)

    def test_questions_inside_units_get_defaults(self):
        asker = AgentTemplate(
            name="asker",
            model_factory=lambda: ScriptedChatModel([
                tool_call("ask_human", {"question": "Which city?", "default": "Rome"}),
                lambda messages: final(last_observation(messages)),
            ]),
            tools=(ask_human,),
        )
        result = ParallelOrchestrator(AgentRegistry([asker])).run_parallel_sync([AgentTask("asker", "go")])
        assert result.outputs == ("Rome",)


def test_user_input_reaches_caller_unwrapped_at_depth_zero():
    """A root agent's own question is not wrapped."""
    async def scenario():
        model = ScriptedChatModel([tool_call("ask_human", {"question": "Name?"}), lambda m: final(last_observation(m))])
        comp = StepAgent("solo", model, tools=[ask_human]).run_suspendable("Greet")
        request = await comp.start()
        assert isinstance(request, UserInput)
        return await comp.resume(ControlResponse.respond(request, "Ada"))

    assert asyncio.run(scenario()).output == "Ada"
