import pytest

import compiler
from app import app


@pytest.fixture
def client():
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


def test_compile_code(client):
    resp = client.post("/compile", json={"code": "INTEGER A, B, C\nLET B = A + C"})
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["errors"] == []
    assert data["declared"] == ["A", "B", "C"]
    line = data["lines"][1]
    assert line["statement"] == "ASSIGN"
    assert line["tac"] == ["t1 = A + C"]
    assert line["assembly"] == ["LDA A", "ADD C", "STR B"]
    assert line["optimized_assembly"] == ["ADD B, A, C"]
    assert line["tokens"][0] == {"type": "KEYWORD", "value": "LET"}


def test_compile_lines_reports_errors(client):
    resp = client.post("/compile", json={"lines": ["WRITE M", "A * / B"]})
    data = resp.get_json()
    assert resp.status_code == 200
    assert [l["status"] for l in data["lines"]] == ["error", "error"]
    assert data["lines"][0]["phase"] == "Semantic"
    assert data["lines"][1]["phase"] == "Syntax"
    assert len(data["errors"]) == 2


@pytest.mark.parametrize("body", [
    None, {}, {"code": 5}, ["BEGIN"], {"lines": ["BEGIN", None]}, {"lines": [5]},
])
def test_compile_bad_request(client, body):
    resp = client.post("/compile", json=body)
    assert resp.status_code == 400
    assert resp.get_json()["lines"] == []


def test_compile_single_line_threads_declarations(client):
    first = client.post("/compile/line", json={"line": "INTEGER M, A", "lineno": 1}).get_json()
    assert first["declared"] == ["A", "M"]
    second = client.post("/compile/line", json={
        "line": "M = A - A",
        "declared": first["declared"],
        "lineno": 2,
    }).get_json()
    assert second["status"] == "valid"
    assert second["optimized_assembly"] == ["SUB M, A, A"]
    assert second["binary"] == ["01010011  01001101  01000001  01000001"]


def test_compile_single_line_bad_request(client):
    assert client.post("/compile/line", json={}).status_code == 400
    resp = client.post("/compile/line", json={"line": "WRITE A", "declared": "A"})
    assert resp.status_code == 400


def test_unexpected_error_returns_500(client, monkeypatch):
    def boom(source):
        raise RuntimeError("boom")
    monkeypatch.setattr(compiler, "compile_program", boom)
    resp = client.post("/compile", json={"code": "BEGIN"})
    assert resp.status_code == 500
    assert resp.get_json()["errors"] == ["Unexpected error: boom"]


def test_sample(client):
    data = client.get("/sample").get_json()
    assert data["lines"] == compiler.SAMPLE_PROGRAM
