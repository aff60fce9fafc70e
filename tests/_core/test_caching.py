from datetime import timedelta

import pytest
from inline_snapshot import snapshot

from httpgate import NoCache, Private, Public, response_caching_headers


def test_no_cache():
    assert response_caching_headers(NoCache()) == snapshot(
        {"Cache-Control": "no-store, no-cache", "Pragma": "no-cache", "Expires": "-1"}
    )


def test_public():
    assert response_caching_headers(Public(3600)) == snapshot({"Cache-Control": "public, max-age=3600"})


def test_private_with_timedelta():
    assert response_caching_headers(Private(timedelta(minutes=5))) == snapshot(
        {"Cache-Control": "private, max-age=300"}
    )


def test_vary():
    assert response_caching_headers(Public(60), vary="Accept, Accept-Encoding") == snapshot(
        {"Cache-Control": "public, max-age=60", "Vary": "Accept, Accept-Encoding"}
    )


def test_vary_with_no_cache():
    assert response_caching_headers(NoCache(), vary="Accept")["Vary"] == "Accept"


def test_unsupported_directive():
    with pytest.raises(AssertionError):
        response_caching_headers("public")  # type: ignore[arg-type]
