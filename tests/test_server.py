import threading
import urllib.request
from dataclasses import replace
from urllib.error import HTTPError

import pytest

from elmdev.server import DevServer, ServerError


@pytest.fixture
def running(project):
    server = DevServer(project)
    thread = threading.Thread(target=server.serve_forever, kwargs={"poll_interval": 0.05}, daemon=True)
    thread.start()
    host, port = server.address
    yield project, f"http://{host}:{port}"
    server.shutdown()
    thread.join(timeout=5)


def _get(url):
    with urllib.request.urlopen(url, timeout=5) as response:
        return response.status, response.headers, response.read()


def _get_error(url):
    with pytest.raises(HTTPError) as info:
        urllib.request.urlopen(url, timeout=5)
    error = info.value
    try:
        return error.code, error.read().decode("utf-8")
    finally:
        error.close()


def test_index_returns_exact_bytes(running):
    project, base = running
    html = b"<!doctype html><html><body><script src=\"/elm.js\"></script></body></html>\n"
    project.index_file.write_bytes(html)

    status, headers, body = _get(base + "/")

    assert status == 200
    assert body == html
    assert headers["Content-Type"].startswith("text/html")


def test_bundle_returns_exact_bytes(running):
    project, base = running
    bundle = b"(function(scope){'use strict';})(this);\n\xff"
    project.output_file.write_bytes(bundle)

    status, headers, body = _get(base + "/elm.js")

    assert status == 200
    assert body == bundle


@pytest.mark.parametrize("route", ["/", "/elm.js"])
def test_missing_file_is_server_error(running, route):
    _, base = running

    code, body = _get_error(base + route)

    assert code == 500
    assert "Error reading file" in body
    assert "No such file or directory" in body


def test_files_are_reread_on_every_request(running):
    project, base = running
    project.output_file.write_text("var v = 1;")
    first = _get(base + "/elm.js")[2]
    again = _get(base + "/elm.js")[2]
    project.output_file.write_text("var v = 2;")
    changed = _get(base + "/elm.js")[2]

    assert first == again == b"var v = 1;"
    assert changed == b"var v = 2;"


def test_index_repeated_requests_are_identical(running):
    project, base = running
    project.index_file.write_bytes(b"<!doctype html><title>app</title>\n")

    first = _get(base + "/")
    second = _get(base + "/")

    assert first[0] == second[0] == 200
    assert first[2] == second[2] == b"<!doctype html><title>app</title>\n"


def test_query_string_is_ignored(running):
    project, base = running
    project.index_file.write_text("<p>shell</p>")

    assert _get(base + "/?cache=bust")[2] == b"<p>shell</p>"


def test_unknown_route_is_not_found(running):
    project, base = running
    project.source_dir.joinpath("Secret.elm").write_text("x")

    code, _ = _get_error(base + "/src/Secret.elm")

    assert code == 404


def test_head_has_no_body(running):
    project, base = running
    project.index_file.write_text("<p>shell</p>")
    request = urllib.request.Request(base + "/", method="HEAD")

    with urllib.request.urlopen(request, timeout=5) as response:
        assert response.status == 200
        assert response.headers["Content-Length"] == str(len("<p>shell</p>"))
        assert response.read() == b""


def test_bind_failure_raises_server_error(project):
    first = DevServer(project)
    try:
        _, port = first.address
        with pytest.raises(ServerError, match="Error binding server"):
            DevServer(replace(project, port=port))
    finally:
        first.close()
