"""Errors raised by the conversation runtime."""

from __future__ import annotations


class AgentRuntimeError(Exception):
    """Base class for runtime errors."""


class ToolExecutionError(AgentRuntimeError):
    """A tool could not do what it was asked; the message goes back to the model."""


class ModelCallError(AgentRuntimeError):
    """The request to the language model failed."""


class IterationLimitExceeded(AgentRuntimeError):
    """The conversation loop hit its iteration cap."""

    def __init__(self, max_iterations: int):
        self.max_iterations = max_iterations
        super().__init__(f"Reached maximum iteration limit ({max_iterations})")
