"""Integration tests exercising the chunk endpoints over HTTP."""

from __future__ import annotations

from pathlib import Path

import pytest
import requests

pytestmark = pytest.mark.integration


def _chunk_url(base_url: str, path: Path) -> str:
    return f"{base_url}{path.as_posix()}"


def test_append_then_read_ranges(
    base_url: str, auth_headers: dict[str, str], tmp_path: Path
) -> None:
    """A written chunk can be read back whole or from the middle."""

    target = tmp_path / "upload.bin"
    url = _chunk_url(base_url, target)

    put = requests.put(url, data=b"\xab" * 1024, headers=auth_headers, timeout=5)
    assert put.status_code == 204
    assert put.content == b""
    assert target.stat().st_size == 1024

    whole = requests.get(url, params={"o": 0, "l": 1024}, headers=auth_headers, timeout=5)
    assert whole.status_code == 200
    assert whole.headers["Content-Type"] == "application/octet-stream"
    assert whole.content == b"\xab" * 1024

    tail = requests.get(url, params={"o": 512, "l": 512}, headers=auth_headers, timeout=5)
    assert tail.status_code == 200
    assert tail.content == b"\xab" * 512


def test_appends_accumulate_in_order(
    base_url: str, auth_headers: dict[str, str], tmp_path: Path
) -> None:
    """Successive PUTs extend the file."""

    target = tmp_path / "parts.bin"
    url = _chunk_url(base_url, target)
    for part in (b"first-", b"second-", b"third"):
        assert requests.put(url, data=part, headers=auth_headers, timeout=5).status_code == 204

    assert target.read_bytes() == b"first-second-third"


def test_read_past_end_returns_short_body(
    base_url: str, auth_headers: dict[str, str], tmp_path: Path
) -> None:
    """Ranges beyond the end return what exists, possibly nothing."""

    target = tmp_path / "short.bin"
    target.write_bytes(b"0123456789")
    url = _chunk_url(base_url, target)

    partial = requests.get(url, params={"o": 8, "l": 100}, headers=auth_headers, timeout=5)
    assert partial.status_code == 200
    assert partial.content == b"89"

    beyond = requests.get(url, params={"o": 50, "l": 10}, headers=auth_headers, timeout=5)
    assert beyond.status_code == 200
    assert beyond.content == b""


@pytest.mark.parametrize(
    "params",
    [{}, {"o": 0}, {"l": 10}, {"o": "x", "l": 10}, {"o": -1, "l": 10}, {"o": 0, "l": 2048}],
)
def test_bad_range_parameters(
    base_url: str, auth_headers: dict[str, str], tmp_path: Path, params: dict
) -> None:
    """Missing, malformed and oversized ranges are rejected."""

    target = tmp_path / "data.bin"
    target.write_bytes(b"data")
    response = requests.get(
        _chunk_url(base_url, target), params=params, headers=auth_headers, timeout=5
    )
    assert response.status_code == 400
    assert response.content == b""


def test_missing_file_is_bad_request(
    base_url: str, auth_headers: dict[str, str], tmp_path: Path
) -> None:
    """I/O failures surface as 400."""

    response = requests.get(
        _chunk_url(base_url, tmp_path / "nope.bin"),
        params={"o": 0, "l": 10},
        headers=auth_headers,
        timeout=5,
    )
    assert response.status_code == 400


@pytest.mark.parametrize("token", [None, "", "wrong", "Bearer {token}"])
def test_requests_without_valid_token_are_rejected(
    base_url: str, plain_server, tmp_path: Path, token: str | None
) -> None:
    """Nothing is written or read without the exact token."""

    target = tmp_path / "guarded.bin"
    headers = {"Origin": "http://localhost:3000"}
    if token is not None:
        headers["authorization"] = token.format(token=plain_server.auth_token)

    put = requests.put(_chunk_url(base_url, target), data=b"x", headers=headers, timeout=5)
    assert put.status_code == 401
    assert put.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"
    assert not target.exists()

    get = requests.get(
        _chunk_url(base_url, target), params={"o": 0, "l": 1}, headers=headers, timeout=5
    )
    assert get.status_code == 401


def test_preflight_mirrors_origin(base_url: str, tmp_path: Path) -> None:
    """OPTIONS needs no token and advertises the allowed methods."""

    response = requests.options(
        _chunk_url(base_url, tmp_path / "any.bin"),
        headers={
            "Origin": "https://web.example",
            "Access-Control-Request-Method": "PUT",
            "Access-Control-Request-Headers": "authorization",
        },
        timeout=5,
    )
    assert response.status_code == 200
    assert response.headers["Access-Control-Allow-Origin"] == "https://web.example"
    assert response.headers["Access-Control-Allow-Methods"] == "GET, POST, PUT, HEAD, OPTIONS"
    assert response.headers["Access-Control-Allow-Headers"] == "authorization"


def test_unsupported_method(base_url: str, auth_headers: dict[str, str], tmp_path: Path) -> None:
    """Authorized requests with other methods get 405."""

    response = requests.delete(
        _chunk_url(base_url, tmp_path / "x.bin"), headers=auth_headers, timeout=5
    )
    assert response.status_code == 405
    assert "PUT" in response.headers["Allow"]


def test_oversized_put_is_rejected(
    base_url: str, auth_headers: dict[str, str], tmp_path: Path
) -> None:
    """Bodies above the chunk size are refused before any write."""

    target = tmp_path / "big.bin"
    response = requests.put(
        _chunk_url(base_url, target), data=b"z" * 1025, headers=auth_headers, timeout=5
    )
    assert response.status_code == 400
    assert not target.exists()


def test_request_id_header_present(base_url: str, auth_headers: dict[str, str], tmp_path: Path) -> None:
    """Each response carries a fresh X-Request-ID."""

    url = _chunk_url(base_url, tmp_path / "ids.bin")
    first = requests.put(url, data=b"a", headers=auth_headers, timeout=5)
    second = requests.put(url, data=b"b", headers=auth_headers, timeout=5)
    assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]


def test_sandbox_rejects_paths_outside_root(sandboxed_server, tmp_path: Path) -> None:
    """A sandboxed server only touches files below its directory."""

    base_url = f"http://127.0.0.1:{sandboxed_server.port}"
    headers = {"authorization": sandboxed_server.auth_token}

    inside = tmp_path / "inside.bin"
    assert requests.put(_chunk_url(base_url, inside), data=b"ok", headers=headers, timeout=5).status_code == 204
    assert inside.read_bytes() == b"ok"

    escape = f"{base_url}{tmp_path.as_posix()}/../outside.bin"
    response = requests.put(escape, data=b"no", headers=headers, timeout=5)
    assert response.status_code == 403
    assert not (tmp_path.parent / "outside.bin").exists()
