from dnsprobe.probe.diagnostics import inspect_cache_policy
from dnsprobe.probe.loop import (
    DEFAULT_THRESHOLD_MS,
    ProbeLoop,
    ProbeSample,
    SampleClass,
    classify_sample,
)
from dnsprobe.probe.output import ParsedOutput, parse_output

__all__ = [
    "DEFAULT_THRESHOLD_MS",
    "ProbeLoop",
    "ProbeSample",
    "SampleClass",
    "classify_sample",
    "inspect_cache_policy",
    "ParsedOutput",
    "parse_output",
]
