import pytest

from ddc_src.resolver import DEFAULT_SERVICE, resolve_service


def test_default_service_is_api():
    assert DEFAULT_SERVICE == "api"


@pytest.mark.parametrize("explicit", [None, "", "   "])
def test_missing_service_resolves_to_default(explicit):
    assert resolve_service(explicit) == "api"


@pytest.mark.parametrize("explicit", ["web", "worker-1", "api"])
def test_explicit_service_is_used_verbatim(explicit):
    assert resolve_service(explicit) == explicit


def test_injected_default_is_used():
    assert resolve_service(None, default="backend") == "backend"
    assert resolve_service("web", default="backend") == "web"
