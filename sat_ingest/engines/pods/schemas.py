"""
Pod Schemas

Phases, scripts and option objects shared by the pod client, the exec
channel and the orchestrator. Pods themselves are handled as the raw JSON
documents returned by the platform.
"""

from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, Field


class PodPhase(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    COMPLETED = "Completed"
    FAILED = "Failed"
    ERROR = "Error"
    TERMINATING = "Terminating"
    UNKNOWN = "Unknown"


# Pods in these phases are replaced instead of reused
FINISHED_PHASES = frozenset({
    PodPhase.SUCCEEDED,
    PodPhase.COMPLETED,
    PodPhase.FAILED,
    PodPhase.ERROR,
    PodPhase.TERMINATING,
    PodPhase.UNKNOWN,
})

RUNNING_PHASES = frozenset({PodPhase.RUNNING})


class InferenceScript(str, Enum):
    INFERENCE = "scripts/inference.py"


class InferenceActionType(str, Enum):
    PREDICT = "predict"
    SUGGEST = "suggest"
    CALCULATE = "calculate"


class EnvVar(BaseModel):
    name: str
    value: str


StatusCallback = Callable[[Dict[str, Any]], None]


class ExecOptions(BaseModel):
    """Options for running a script inside a project's pod."""
    force_run_pod: bool = Field(default=False, description="Create the pod and wait for it if it is not running")
    init_training: bool = Field(default=True, description="Value of INIT_TRAINING for a pod created by this call")
    on_finish: Optional[Callable[[], Awaitable[None]]] = None


def pod_phase(pod: Optional[Dict[str, Any]]) -> Optional[PodPhase]:
    """Phase of a pod document; unrecognised phases count as Unknown."""
    if not pod:
        return None
    phase = (pod.get("status") or {}).get("phase")
    if phase is None:
        return None
    try:
        return PodPhase(phase)
    except ValueError:
        return PodPhase.UNKNOWN


def is_running(pod: Optional[Dict[str, Any]]) -> bool:
    return pod_phase(pod) in RUNNING_PHASES


def is_finished(pod: Optional[Dict[str, Any]]) -> bool:
    return pod_phase(pod) in FINISHED_PHASES


def join_args(args: List[str]) -> List[str]:
    """Variadic script arguments travel as one comma-joined token."""
    return [",".join(args)] if args else []
