"""
Conversation orchestrator: drives the model/tool loop for one user turn.

Each iteration:
    1. Send the session transcript and the registry's tool definitions
       to the model client.
    2. Append the reply to the transcript as an assistant message.
    3. Branch on the stop signal:
         completed     → render the text, turn ends
         tool use      → run every invocation concurrently, append one
                         user message with the results in invocation
                         order, go to 1
         length limit  → render the partial text, turn ends with a warning

Invocations in a reply that ends the turn are answered with error results,
so the transcript never carries a tool use without its result.

A model failure ends the turn with MODEL_ERROR; hitting max_iterations
ends it with ITERATION_LIMIT. Neither is raised: process_user_message()
always returns a TurnResult.

Usage:
    orchestrator = Orchestrator(model_client, registry, session=InMemorySession())
    await orchestrator.initialize()
    result = await orchestrator.process_user_message("List the Python files")
    await orchestrator.shutdown()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from agent_runtime.errors import IterationLimitExceeded, ModelCallError
from agent_runtime.hooks import HookDispatcher, HookEvent, HooksManager
from agent_runtime.messages import Message, ToolInvocation, ToolResultBlock
from agent_runtime.model import ModelClient, ModelResponse, StopReason
from agent_runtime.session import InMemorySession, SessionStore
from agent_runtime.tools.base import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 50

TextRenderer = Callable[[str], None]


class LoopPhase(str, Enum):
    AWAITING_MODEL = "awaiting-model"
    AWAITING_TOOLS = "awaiting-tools"
    DONE = "done"


@dataclass
class LoopState:
    """Progress of one run of the loop."""
    max_iterations: int
    iteration: int = 0
    phase: LoopPhase = LoopPhase.AWAITING_MODEL

    @property
    def exhausted(self) -> bool:
        return self.iteration >= self.max_iterations

    def next_iteration(self) -> None:
        self.iteration += 1
        self.phase = LoopPhase.AWAITING_MODEL


class TurnOutcome(str, Enum):
    COMPLETED = "completed"
    LENGTH_LIMIT = "length_limit"
    MODEL_ERROR = "model_error"
    ITERATION_LIMIT = "iteration_limit"


@dataclass
class TurnResult:
    outcome: TurnOutcome
    iterations: int
    text: str = ""
    error: Exception | None = None


class Orchestrator:
    """
    Coordinates the model client, the tool registry, the session and hooks.

    Args:
        model_client: Anything implementing ModelClient.send_message().
        tool_registry: Catalog of built-in and proxied tools.
        session: Transcript store (defaults to a fresh InMemorySession).
        hooks: Hook dispatcher (defaults to an empty HooksManager).
        max_iterations: Hard cap on model calls per user turn.
        on_text: Renderer for the model's final text (defaults to print).
    """

    def __init__(
        self,
        model_client: ModelClient,
        tool_registry: ToolRegistry,
        session: SessionStore | None = None,
        hooks: HookDispatcher | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        on_text: TextRenderer | None = None,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.model_client = model_client
        self.tool_registry = tool_registry
        self.session = session if session is not None else InMemorySession()
        self.hooks = hooks if hooks is not None else HooksManager()
        self.max_iterations = max_iterations
        self.on_text = on_text or print

    # ── Session lifecycle ──

    async def initialize(self) -> None:
        await self._trigger(HookEvent.SESSION_START, {"session_id": self._session_id()})

    async def shutdown(self) -> None:
        await self._trigger(HookEvent.SESSION_END, {"session_id": self._session_id()})
        await self._persist()

    async def process_user_message(self, text: str) -> TurnResult:
        """Run one user turn to completion and save the session."""
        await self._trigger(HookEvent.USER_PROMPT_SUBMIT, {"input": text})
        self.session.append(Message.user(text))
        result = await self.run()
        await self._persist()
        return result

    # ── The loop ──

    async def run(self) -> TurnResult:
        """Drive the model until it stops, fails or the iteration cap is hit."""
        state = LoopState(self.max_iterations)

        while not state.exhausted:
            state.next_iteration()
            try:
                response = await self.model_client.send_message(
                    self.session.messages,
                    self.tool_registry.get_definitions(),
                )
            except Exception as e:
                error = e if isinstance(e, ModelCallError) else ModelCallError(str(e))
                logger.error(f"Error in conversation processing: {error}")
                state.phase = LoopPhase.DONE
                return TurnResult(TurnOutcome.MODEL_ERROR, state.iteration, error=error)

            self.session.append(Message.assistant(response.content))

            if response.stop_reason is StopReason.COMPLETED:
                state.phase = LoopPhase.DONE
                self._decline_invocations(response, "model ended its turn")
                return self._finish(TurnOutcome.COMPLETED, state, response)

            if response.stop_reason is StopReason.LENGTH_LIMIT:
                logger.warning("Response reached max tokens limit")
                state.phase = LoopPhase.DONE
                self._decline_invocations(response, "response was truncated")
                return self._finish(TurnOutcome.LENGTH_LIMIT, state, response)

            invocations = response.tool_invocations
            if not invocations:
                logger.warning("Model asked for tool use without any tool invocations; ending turn")
                state.phase = LoopPhase.DONE
                return self._finish(TurnOutcome.COMPLETED, state, response)

            state.phase = LoopPhase.AWAITING_TOOLS
            results = await self.execute_tools(invocations)
            self.session.append(Message.tool_results(results))

        error = IterationLimitExceeded(state.max_iterations)
        logger.warning(str(error))
        state.phase = LoopPhase.DONE
        return TurnResult(TurnOutcome.ITERATION_LIMIT, state.iteration, error=error)

    def _decline_invocations(self, response: ModelResponse, reason: str) -> None:
        """Answer invocations the loop will not run, so the next model call sees a result for each."""
        invocations = response.tool_invocations
        if not invocations:
            return
        logger.warning(f"Skipping {len(invocations)} tool call(s): {reason}")
        self.session.append(Message.tool_results([
            ToolResultBlock(
                tool_use_id=invocation.id,
                content=f"Tool call not executed: {reason}",
                is_error=True,
            )
            for invocation in invocations
        ]))

    def _finish(self, outcome: TurnOutcome, state: LoopState, response: ModelResponse) -> TurnResult:
        text = response.text
        if text:
            self.on_text(text)
        return TurnResult(outcome, state.iteration, text=text)

    # ── Tools ──

    async def execute_tools(self, invocations: list[ToolInvocation]) -> list[ToolResultBlock]:
        """Run all invocations concurrently; results keep invocation order."""
        logger.info(f"Executing {len(invocations)} tool(s)...")
        outcomes = await asyncio.gather(
            *(self._execute_tool(invocation) for invocation in invocations),
            return_exceptions=True,
        )

        results: list[ToolResultBlock] = []
        for invocation, outcome in zip(invocations, outcomes):
            if isinstance(outcome, ToolResultBlock):
                results.append(outcome)
                continue
            if not isinstance(outcome, Exception):
                raise outcome
            logger.error(f"Tool {invocation.name} failed: {outcome}")
            results.append(ToolResultBlock(
                tool_use_id=invocation.id,
                content=f'Error executing tool "{invocation.name}": {outcome}',
                is_error=True,
            ))
        return results

    async def _execute_tool(self, invocation: ToolInvocation) -> ToolResultBlock:
        await self._trigger(HookEvent.BEFORE_TOOL_CALL, {
            "tool": invocation.name,
            "tool_use_id": invocation.id,
        })

        logger.info(f"  → {invocation.name}")
        result = await self.tool_registry.execute(invocation.name, invocation.arguments)

        await self._trigger(HookEvent.AFTER_TOOL_CALL, {
            "tool": invocation.name,
            "tool_use_id": invocation.id,
            "success": not result.is_error,
        })

        if result.is_error:
            logger.error(f"  ✗ {invocation.name}: {result.content[:100]}")
        else:
            logger.info(f"  ✓ {invocation.name}")

        return ToolResultBlock(
            tool_use_id=invocation.id,
            content=result.content,
            is_error=result.is_error,
        )

    # ── Collaborators ──

    async def _trigger(self, event: HookEvent, payload: dict[str, Any]) -> None:
        try:
            await self.hooks.trigger(event, payload)
        except Exception as e:
            logger.error(f"Hook dispatch for {event.value} failed: {e}")

    async def _persist(self) -> None:
        try:
            await self.session.persist()
        except Exception as e:
            logger.error(f"Failed to save session: {e}")

    def _session_id(self) -> str | None:
        return getattr(self.session, "id", None)
