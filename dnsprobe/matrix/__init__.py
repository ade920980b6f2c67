from dnsprobe.matrix.generator import generate
from dnsprobe.matrix.launchers import CallableLauncher, DockerLauncher, LaunchOutcome, Launcher, LocalProcessLauncher
from dnsprobe.matrix.methods import LaunchPlan, build_plan
from dnsprobe.matrix.orchestrator import MatrixOrchestrator
from dnsprobe.matrix.result import RunResult, RunStatus
from dnsprobe.matrix.spec import ConfigMethod, RunSpec

__all__ = [
    "generate",
    "CallableLauncher",
    "DockerLauncher",
    "LaunchOutcome",
    "Launcher",
    "LocalProcessLauncher",
    "LaunchPlan",
    "build_plan",
    "MatrixOrchestrator",
    "RunResult",
    "RunStatus",
    "ConfigMethod",
    "RunSpec",
]
