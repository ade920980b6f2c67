"""Tests for the configuration context and properties handling."""

import pytest

from dnsprobe.context import (
    SECURITY_NEGATIVE_TTL,
    SECURITY_TTL,
    SUN_NET_TTL,
    ConfigurationContext,
    edit_security_properties,
    parse_define,
    parse_properties,
)
from dnsprobe.errors import StartupError


class TestParseProperties:
    def test_comments_and_separators(self):
        text = "# comment\n! also comment\n\na=1\nb : 2\nc=\n"
        assert parse_properties(text) == {"a": "1", "b": "2", "c": ""}

    def test_later_duplicate_wins(self):
        assert parse_properties("x=1\nx=2\n") == {"x": "2"}


class TestParseDefine:
    def test_with_prefix(self):
        assert parse_define("-Dsun.net.inetaddr.ttl=5") == ("sun.net.inetaddr.ttl", "5")

    def test_bare_name_is_empty(self):
        assert parse_define("flag") == ("flag", "")

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            parse_define("=5")


class TestEditSecurityProperties:
    def test_strips_prior_entries_and_appends(self):
        text = "securerandom.source=file:/dev/random\nnetworkaddress.cache.ttl=-1\nnetworkaddress.cache.negative.ttl=10\n"
        edited = edit_security_properties(text, {SECURITY_TTL: "5", SECURITY_NEGATIVE_TTL: "5"})
        props = parse_properties(edited)
        assert props == {
            "securerandom.source": "file:/dev/random",
            SECURITY_TTL: "5",
            SECURITY_NEGATIVE_TTL: "5",
        }
        assert edited.count("networkaddress.cache.ttl=") == 1
        assert edited.endswith("\n")

    def test_empty_base(self):
        assert edit_security_properties("", {SECURITY_TTL: "0"}) == f"{SECURITY_TTL}=0\n"


class TestConfigurationContext:
    def test_from_sources(self, tmp_path):
        sec = tmp_path / "security.properties"
        sec.write_text(f"{SECURITY_TTL}=7\n")
        ctx = ConfigurationContext.from_sources([f"{SUN_NET_TTL}=3"], sec)
        assert ctx.get_security_property(SECURITY_TTL) == "7"
        assert ctx.get_system_property(SUN_NET_TTL) == "3"
        # The two tables are separate
        assert ctx.get_system_property(SECURITY_TTL) is None

    def test_unreadable_security_file(self, tmp_path):
        with pytest.raises(StartupError):
            ConfigurationContext.from_sources([], tmp_path / "missing.properties")

    def test_bad_define(self):
        with pytest.raises(StartupError):
            ConfigurationContext.from_sources(["=1"])

    def test_set_after_use_still_stored(self, caplog):
        ctx = ConfigurationContext()
        ctx.mark_used()
        ctx.set_security_property(SECURITY_TTL, "1")
        assert ctx.in_use
        assert ctx.get_security_property(SECURITY_TTL) == "1"
        assert "after first lookup" in caplog.text

    def test_tables_are_copies(self):
        ctx = ConfigurationContext({"a": "1"}, {"b": "2"})
        ctx.system_properties()["a"] = "changed"
        ctx.security_properties()["b"] = "changed"
        assert ctx.get_system_property("a") == "1"
        assert ctx.get_security_property("b") == "2"
