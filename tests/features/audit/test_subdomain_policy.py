"""
Tests for the subdomain link policy.
"""

from app.features.audit.services.discovery.subdomain_policy import (
    get_base_domain,
    get_subdomain,
    should_follow_link,
)

SEED = "https://www.example.com.br/"


class TestShouldFollowLink:
    """Test cases for should_follow_link."""

    def test_main_only_rejects_blog_accepts_www(self):
        assert should_follow_link("https://blog.example.com.br/post", SEED, "main_only") is False
        assert should_follow_link("https://www.example.com.br/contato", SEED, "main_only") is True
        assert should_follow_link("https://example.com.br/contato", SEED, "main_only") is True

    def test_mobile_aliases_always_followed(self):
        assert should_follow_link("https://m.example.com.br/", SEED, "main_only") is True
        assert should_follow_link("https://mobile.example.com.br/", SEED, "specific", []) is True

    def test_all_subdomains(self):
        assert should_follow_link("https://blog.example.com.br/", SEED, "all_subdomains") is True
        assert should_follow_link("https://a.b.example.com.br/", SEED, "all_subdomains") is True

    def test_specific(self):
        allowed = ["Blog", "loja"]
        assert should_follow_link("https://blog.example.com.br/", SEED, "specific", allowed) is True
        assert should_follow_link("https://loja.example.com.br/", SEED, "specific", allowed) is True
        assert should_follow_link("https://docs.example.com.br/", SEED, "specific", allowed) is False

    def test_other_domains_never_followed(self):
        for policy in ("main_only", "all_subdomains", "specific"):
            assert should_follow_link("https://google.com/", SEED, policy, ["google"]) is False
            assert should_follow_link("https://notexample.com.br/", SEED, policy) is False

    def test_invalid_urls(self):
        assert should_follow_link("mailto:a@b.com", SEED) is False
        assert should_follow_link("https://[bad/", SEED) is False


class TestDomainHelpers:
    def test_base_domain(self):
        assert get_base_domain("www.example.com") == "example.com"
        assert get_base_domain("CDN.example.com") == "example.com"
        assert get_base_domain("blog.example.com") == "blog.example.com"

    def test_subdomain(self):
        assert get_subdomain("blog.example.com", "example.com") == "blog"
        assert get_subdomain("example.com", "example.com") is None
        assert get_subdomain("other.org", "example.com") is None
