"""Tests for structured output emission and parsing."""

import pytest

from dnsprobe.context import SECURITY_TTL, ConfigurationContext
from dnsprobe.errors import OutputParseError
from dnsprobe.probe.loop import ProbeSample, SampleClass
from dnsprobe.probe.output import (
    CONFIG_END,
    CONFIG_START,
    RESULTS_END,
    RESULTS_START,
    extract_block,
    format_config_block,
    format_results_block,
    parse_output,
)
from dnsprobe.snapshot import ConfigSource, capture

JVM_STYLE_OUTPUT = """\
Picked up JAVA_TOOL_OPTIONS: -Xss1m
DNS Cache Configuration Test
---CONFIG_START---
{
  "java_version": "21.0.2",
  "java_vendor": "Amazon.com Inc.",
  "java_runtime_version": "21.0.2+13-LTS",
  "security_manager_present": false,
  "properties": {
    "security_networkaddress_cache_ttl": "5",
    "security_networkaddress_cache_negative_ttl": null,
    "system_networkaddress_cache_ttl": null,
    "system_networkaddress_cache_negative_ttl": null,
    "system_sun_net_inetaddr_ttl": null,
    "system_sun_net_inetaddr_negative_ttl": null
  },
  "effective_ttl": 5,
  "effective_ttl_source": "security_property"
}
---CONFIG_END---
---RESULTS_START---
[
  {"iteration": 1, "timestamp": 1700000000000, "query_ms": 48, "success": true, "addresses": ["10.0.0.2", "10.0.0.1"]},
  {"iteration": 2, "timestamp": 1700000002000, "query_ms": 0, "success": true, "addresses": ["10.0.0.1", "10.0.0.2"]},
  {"iteration": 3, "timestamp": 1700000006000, "query_ms": 31, "success": true, "addresses": ["10.0.0.1", "10.0.0.2"]},
  {"iteration": 4, "timestamp": 1700000008000, "query_ms": 12, "success": false, "error": "UnknownHostException"}
]
---RESULTS_END---
Test completed. Total iterations: 4
"""


def make_samples():
    return [
        ProbeSample(1, 1_700_000_000_000, 0.0, 40.0, SampleClass.FIRST, ("10.0.0.1",)),
        ProbeSample(2, 1_700_000_001_000, 1.0, 0.1, SampleClass.CACHE_HIT, ("10.0.0.1",)),
    ]


class TestExtractBlock:
    def test_missing(self):
        assert extract_block("nothing here", CONFIG_START, CONFIG_END) is None

    def test_unterminated(self):
        assert extract_block(f"{RESULTS_START}\n[\n", RESULTS_START, RESULTS_END) is None

    def test_last_complete_section_wins(self):
        text = f"{CONFIG_START}\nold\n{CONFIG_END}\nnoise\n{CONFIG_START}\nnew\n{CONFIG_END}\n"
        assert extract_block(text, CONFIG_START, CONFIG_END) == "new"


class TestParseOutput:
    def test_own_output(self):
        context = ConfigurationContext(security_properties={SECURITY_TTL: "5"})
        before = capture(context, "before")
        text = "\n".join([
            "log line",
            format_config_block(before, before, {"cache_policy": {"available": False}}),
            "[..] Iteration 1: ...",
            format_results_block(make_samples()),
        ])
        parsed = parse_output(text)
        assert [s.label for s in parsed.snapshots] == ["before", "before"]
        assert parsed.snapshots[-1].effective_ttl == 5
        assert parsed.samples == tuple(make_samples())
        assert parsed.diagnostics == {"cache_policy": {"available": False}}

    def test_jvm_style_output(self):
        parsed = parse_output(JVM_STYLE_OUTPUT, threshold_ms=5.0)
        assert len(parsed.snapshots) == 1
        snap = parsed.snapshots[0]
        assert snap.effective_ttl == 5
        assert snap.effective_ttl_source == ConfigSource.SECURITY_PROPERTY
        assert snap.security_ttl.raw == "5"
        assert not snap.sandbox_active

        classes = [s.classification for s in parsed.samples]
        assert classes == [
            SampleClass.FIRST,
            SampleClass.CACHE_HIT,
            SampleClass.CACHE_MISS,
            SampleClass.FAILURE,
        ]
        assert [s.offset_s for s in parsed.samples] == [0.0, 2.0, 6.0, 8.0]
        assert parsed.samples[0].addresses == ("10.0.0.1", "10.0.0.2")
        assert parsed.samples[3].error == "UnknownHostException"

    def test_missing_results_block(self):
        context = ConfigurationContext()
        text = format_config_block(capture(context))
        with pytest.raises(OutputParseError, match="RESULTS"):
            parse_output(text)

    def test_truncated_output(self):
        text = JVM_STYLE_OUTPUT.split(RESULTS_END)[0]
        with pytest.raises(OutputParseError):
            parse_output(text)

    def test_invalid_json(self):
        text = f"{CONFIG_START}\n{{not json\n{CONFIG_END}\n{RESULTS_START}\n[]\n{RESULTS_END}\n"
        with pytest.raises(OutputParseError, match="not valid JSON"):
            parse_output(text)

    def test_invalid_sample(self):
        context = ConfigurationContext()
        text = "\n".join([
            format_config_block(capture(context)),
            f"{RESULTS_START}\n[{{\"iteration\": 0, \"timestamp\": 1, \"query_ms\": 1, \"success\": true}}]\n{RESULTS_END}",
        ])
        with pytest.raises(OutputParseError, match="Invalid RESULTS entry"):
            parse_output(text)

    def test_empty_results(self):
        context = ConfigurationContext()
        text = "\n".join([format_config_block(capture(context)), format_results_block([])])
        assert parse_output(text).samples == ()
