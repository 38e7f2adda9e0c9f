# Agent modules - Core contracts
from .base import (
    BaseAgent,
    AgentResponse,
    AgentStatus,
)

# Assessment lifecycle
from .assessment_machine import AssessmentStateMachine
from .orchestrator import AssessmentOrchestrator
from .result_reconciler import ResultReconcilerAgent, ReconcileInput

__all__ = [
    # Core contracts
    "BaseAgent",
    "AgentResponse",
    "AgentStatus",
    # Agents
    "AssessmentStateMachine",
    "AssessmentOrchestrator",
    "ResultReconcilerAgent",
    "ReconcileInput",
]
