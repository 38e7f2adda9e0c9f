"""
Base Agent Contracts for the Typing Assessment Engine.

This module defines the contract for the engine's agents: typed input
in, a standardized response out. Network-facing work such as result
reconciliation reports through it so callers handle outcomes uniformly.

Design Principles:
    1. Single Responsibility: Each agent does exactly one thing well
    2. Strong Typing: All inputs/outputs are typed dataclasses, not raw dicts
    3. Immutability: Sessions are immutable; agents never mutate them
    4. Explainability: Every response carries an explanation
    5. Auditability: Agents keep a reasoning trace

Usage:
    >>> class MyAgent(BaseAgent[MyInput, MyOutput]):
    ...     name = "my_agent"
    ...     description = "Does something specific"
    ...
    ...     def run(self, input_data: MyInput) -> AgentResponse[MyOutput]:
    ...         pass
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar
from uuid import uuid4


# =============================================================================
# TYPE VARIABLES
# =============================================================================

InputT = TypeVar("InputT")   # Agent input type
OutputT = TypeVar("OutputT") # Agent output type


# =============================================================================
# ENUMS
# =============================================================================

class AgentStatus(str, Enum):
    """
    Outcome status of an agent's execution.

    Using str, Enum for JSON serialization compatibility.
    """
    SUCCESS = "success"   # Agent completed successfully
    FAILURE = "failure"   # Agent failed, cannot proceed
    RETRY = "retry"       # Agent failed but retry may succeed (transient error)


# =============================================================================
# CORE DATA CONTRACTS
# =============================================================================

@dataclass(frozen=True)
class AgentResponse(Generic[OutputT]):
    """
    Standardized response returned by every agent.

    Attributes:
        agent_name: Identifier of the agent that produced this response
        status: Execution outcome (success/failure/retry)
        output: The actual result data, strongly typed per agent
        explanation: Human-readable reasoning for the output
        metadata: Optional diagnostics (attempts, timings, error codes)
    """
    agent_name: str
    status: AgentStatus
    output: Optional[OutputT] = None
    explanation: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def is_successful(self) -> bool:
        """Check if the agent completed successfully."""
        return self.status == AgentStatus.SUCCESS

    def should_retry(self) -> bool:
        """Check if the agent suggests retrying."""
        return self.status == AgentStatus.RETRY

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dictionary."""
        return {
            "agent_name": self.agent_name,
            "status": self.status.value,
            "output": self.output if not hasattr(self.output, "to_dict")
                      else self.output.to_dict(),  # type: ignore
            "explanation": self.explanation,
            "metadata": self.metadata,
        }


# =============================================================================
# BASE AGENT ABSTRACT CLASS
# =============================================================================

class BaseAgent(ABC, Generic[InputT, OutputT]):
    """
    Abstract base class for the engine's agents.

    Class Attributes:
        name: Unique identifier for this agent type (must be overridden)
        description: Human-readable description of agent's responsibility

    Design Contract:
        1. Agents never mutate a session; they read snapshots
        2. Agents are single-purpose
        3. run() reports failures in the response instead of raising
    """

    name: str = "base_agent"
    description: str = "Base agent - must be overridden"

    def __init__(self, agent_id: Optional[str] = None):
        """
        Initialize the agent with optional ID.

        Args:
            agent_id: Unique identifier for this agent instance.
                     If not provided, generates a UUID.
        """
        self.agent_id = agent_id or uuid4().hex[:12]
        self._reasoning_log: List[str] = []

    def log_reasoning(self, message: str) -> None:
        """Add a step to the reasoning trace for auditability."""
        self._reasoning_log.append(message)

    @property
    def reasoning_log(self) -> List[str]:
        return list(self._reasoning_log)

    @abstractmethod
    def run(self, input_data: InputT) -> AgentResponse[OutputT]:
        """
        Execute the agent's core logic.

        Args:
            input_data: Strongly-typed input specific to this agent

        Returns:
            AgentResponse with status, output and explanation

        Raises:
            Should NOT raise exceptions. Errors are captured in
            AgentResponse with status=FAILURE or RETRY.
        """
        pass

    # -------------------------------------------------------------------------
    # Helper Methods (for subclasses)
    # -------------------------------------------------------------------------

    def _success(
        self,
        output: OutputT,
        explanation: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AgentResponse[OutputT]:
        return AgentResponse(
            agent_name=self.name,
            status=AgentStatus.SUCCESS,
            output=output,
            explanation=explanation,
            metadata=metadata or {},
        )

    def _failure(
        self,
        error: str,
        explanation: str,
        output: Optional[OutputT] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AgentResponse[OutputT]:
        """
        Helper to construct a failure result.

        Args:
            error: Technical error message
            explanation: Human-readable explanation
            output: Partial output, if the agent has one to report
            metadata: Optional diagnostic info
        """
        return AgentResponse(
            agent_name=self.name,
            status=AgentStatus.FAILURE,
            output=output,
            explanation=explanation,
            metadata={**(metadata or {}), "error": error},
        )

    def _retry(
        self,
        reason: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AgentResponse[OutputT]:
        return AgentResponse(
            agent_name=self.name,
            status=AgentStatus.RETRY,
            output=None,
            explanation=f"Retry suggested: {reason}",
            metadata=metadata or {},
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
