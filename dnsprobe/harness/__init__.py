from dnsprobe.harness.config import MatrixConfig, MatrixPreset, get_config, get_preset, list_presets
from dnsprobe.harness.verdict import Verdict, VerdictStatus, classify

__all__ = [
    "MatrixConfig",
    "MatrixPreset",
    "get_config",
    "get_preset",
    "list_presets",
    "Verdict",
    "VerdictStatus",
    "classify",
]
