from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from cw_rest import ItemDelta
from cw_rest import fakeserver


def _client(objects: dict[str, Any] | None = None, **kw: Any) -> TestClient:
    return TestClient(fakeserver.create_app(objects, **kw))


def test_listing_endpoints() -> None:
    client = _client({"1": {"id": "1", "name": "a"}, "2": {"id": "2", "name": "b"}})

    r = client.get("/api/objects")
    assert r.status_code == 200
    assert sorted(o["id"] for o in r.json()) == ["1", "2"]

    r = client.get("/api/object_list")
    data = r.json()
    assert (data["results"], data["pages"], data["page"]) == (True, 1, 1)
    assert len(data["list"]) == 2


def test_post_takes_id_from_body_or_url() -> None:
    client = _client()

    assert client.post("/api/objects", json={"Id": "x1", "v": 1}).json() == {"Id": "x1", "v": 1}
    assert client.get("/api/objects/x1").json() == {"Id": "x1", "v": 1}

    assert client.post("/api/objects", json={"ID": 7}).status_code == 200
    assert client.get("/api/objects/7").status_code == 200

    assert client.post("/api/objects/by-url", json={"v": 2}).status_code == 200
    assert client.get("/api/objects/by-url").json() == {"v": 2}

    assert client.post("/api/objects", json={"name": "no id"}).status_code == 400
    assert client.post("/api/objects", content=b"not json").status_code == 400
    assert client.post("/api/objects", content=b"[1,2]").status_code == 400


def test_unknown_ids_are_404() -> None:
    client = _client()
    assert client.get("/api/objects/nope").status_code == 404
    assert client.put("/api/objects/nope", json={"id": "nope"}).status_code == 404
    assert client.delete("/api/objects/nope").status_code == 404


def test_put_replaces_and_delete_removes() -> None:
    client = _client({"1": {"id": "1", "name": "a", "old": True}})
    assert client.put("/api/objects/1", json={"id": "1", "name": "b"}).json() == {"id": "1", "name": "b"}
    assert client.get("/api/objects/1").json() == {"id": "1", "name": "b"}

    r = client.delete("/api/objects/1")
    assert r.status_code == 200
    assert r.content == b""
    assert client.get("/api/objects/1").status_code == 404


def test_patch_applies_item_deltas() -> None:
    client = _client({"9": {"Id": "9", "name": "jsmith", "description": "old"}})

    for op in (ItemDelta.add("email", "a@b"), ItemDelta.replace("name", "jdoe"), ItemDelta.delete("description")):
        r = client.patch("/api/objects/9", json=op.envelope())
        assert r.status_code == 200

    assert client.get("/api/objects/9").json() == {"Id": "9", "name": "jdoe", "email": "a@b"}


def test_patch_rejects_bad_envelope_and_replaces_otherwise() -> None:
    client = _client({"1": {"id": "1", "a": 1}})
    bad = {"objectModification": {"itemDelta": {"modificationType": "move", "path": "a"}}}
    assert client.patch("/api/objects/1", json=bad).status_code == 400
    assert client.get("/api/objects/1").json() == {"id": "1", "a": 1}

    assert client.patch("/api/objects/1", json={"id": "1", "b": 2}).json() == {"id": "1", "b": 2}


def test_static_directory(tmp_path: Path) -> None:
    (tmp_path / "hello.txt").write_text("hi", encoding="utf-8")
    client = _client(static_dir=tmp_path)
    r = client.get("/static/hello.txt")
    assert r.status_code == 200
    assert r.text == "hi"


def test_main_runs_uvicorn(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    seed = tmp_path / "objects.json"
    seed.write_text(json.dumps({"1": {"id": "1"}}), encoding="utf-8")
    seen: dict[str, Any] = {}

    def fake_run(app: Any, **kw: Any) -> None:
        seen["app"] = app
        seen.update(kw)

    monkeypatch.setattr(fakeserver.uvicorn, "run", fake_run)
    fakeserver.main(["--port", "9099", "--host", "0.0.0.0", "--objects", str(seed)])

    assert (seen["host"], seen["port"]) == ("0.0.0.0", 9099)
    assert seen["log_level"] == "warning"
    assert TestClient(seen["app"]).get("/api/objects/1").json() == {"id": "1"}
