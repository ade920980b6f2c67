"""Tests for the cache policy inspector."""

from dnsprobe.context import SECURITY_TTL, SUN_NET_TTL, ConfigurationContext
from dnsprobe.probe.diagnostics import inspect_cache_policy
from dnsprobe.resolver import CachingResolver


class TestInspectCachePolicy:
    def test_preview_before_first_lookup(self, clock, backend):
        context = ConfigurationContext({SUN_NET_TTL: "7"})
        info = inspect_cache_policy(CachingResolver(context, lookup=backend, clock=clock))
        assert info["available"] is True
        assert info["frozen"] is False
        assert info["ttl"] == 7
        assert info["ttl_source"] == "sun_net_inetaddr_ttl"
        assert backend.calls == 0
        assert not context.in_use

    def test_frozen_policy(self, clock, backend):
        context = ConfigurationContext(security_properties={SECURITY_TTL: "0"})
        resolver = CachingResolver(context, lookup=backend, clock=clock)
        resolver.resolve("example.com")
        context.set_security_property(SECURITY_TTL, "99")
        info = inspect_cache_policy(resolver)
        assert info["frozen"] is True
        assert info["ttl"] == 0
        assert info["ttl_display"] == "0s (no caching)"

    def test_opaque_resolver(self):
        class Opaque:
            def resolve(self, host):
                return ("10.0.0.1",)

        info = inspect_cache_policy(Opaque())
        assert info["available"] is False
        assert "Opaque" in info["reason"]

    def test_never_raises(self):
        class Exploding:
            @property
            def policy(self):
                raise RuntimeError("no access")

        info = inspect_cache_policy(Exploding())
        assert info == {"available": False, "reason": "inspection failed: no access"}
