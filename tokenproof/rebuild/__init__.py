"""Background rebuild: worker thread, messages, orchestrator."""

from tokenproof.rebuild.messages import CompleteMessage, ErrorMessage, ProgressMessage
from tokenproof.rebuild.orchestrator import RebuildOrchestrator
from tokenproof.rebuild.status import RebuildState, RebuildStatus

__all__ = [
    "CompleteMessage",
    "ErrorMessage",
    "ProgressMessage",
    "RebuildOrchestrator",
    "RebuildState",
    "RebuildStatus",
]
