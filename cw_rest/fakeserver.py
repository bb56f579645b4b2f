# /cw_rest/fakeserver.py
# CrossWatch REST - in-memory JSON object API for development and tests
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import argparse
import json
import threading
from pathlib import Path
from typing import Any, Literal, Mapping, Sequence

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ValidationError

from ._log import log
from ._modification import ItemDelta, apply_operations

_ID_FIELDS = ("id", "Id", "ID")


class ItemDeltaBody(BaseModel):
    modificationType: Literal["add", "replace", "delete"]
    path: str
    value: Any = None


class ObjectModificationBody(BaseModel):
    itemDelta: ItemDeltaBody


class ModificationEnvelope(BaseModel):
    objectModification: ObjectModificationBody

    def to_delta(self) -> ItemDelta:
        d = self.objectModification.itemDelta
        if d.modificationType == "delete":
            return ItemDelta.delete(d.path)
        return ItemDelta(d.modificationType, d.path, d.value)


class ObjectStore:
    """id -> object, guarded by a lock (uvicorn may run handlers in threads)."""

    def __init__(self, objects: Mapping[str, Any] | None = None):
        self._lock = threading.Lock()
        self._objects: dict[str, dict[str, Any]] = {str(k): dict(v) for k, v in (objects or {}).items()}

    def all(self) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._objects.values())

    def get(self, object_id: str) -> dict[str, Any] | None:
        with self._lock:
            return self._objects.get(object_id)

    def put(self, object_id: str, obj: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            self._objects[object_id] = obj
            return obj

    def delete(self, object_id: str) -> None:
        with self._lock:
            self._objects.pop(object_id, None)


async def _json_body(request: Request) -> dict[str, Any] | None:
    raw = await request.body()
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        raise HTTPException(400, "Request body is not valid JSON") from None
    if not isinstance(data, dict):
        raise HTTPException(400, "Request body must be a JSON object")
    return data


def _id_from(body: Mapping[str, Any]) -> str:
    for name in _ID_FIELDS:
        if name in body:
            return str(body[name])
    return ""


def create_app(
    objects: Mapping[str, Any] | None = None,
    *,
    static_dir: str | Path | None = None,
    debug: bool = False,
) -> FastAPI:
    app = FastAPI(title="cw-rest fake server", docs_url=None, redoc_url=None, openapi_url=None)
    store = ObjectStore(objects)
    app.state.store = store

    def _trace(request: Request, msg: str, **fields: Any) -> None:
        log("FAKE", "request", "debug", f"{request.method} {request.url.path} {msg}", debug=debug, **fields)

    @app.get("/api/objects")
    def list_objects() -> JSONResponse:
        return JSONResponse(store.all())

    @app.get("/api/object_list")
    def object_list() -> JSONResponse:
        return JSONResponse({"results": True, "pages": 1, "page": 1, "list": store.all()})

    @app.post("/api/objects")
    async def create_object(request: Request) -> JSONResponse:
        body = await _json_body(request)
        object_id = _id_from(body or {})
        if body is None or not object_id:
            raise HTTPException(400, "POST sent with no id field in the data. Cannot persist this!")
        _trace(request, "stored", id=object_id)
        return JSONResponse(store.put(object_id, body))

    @app.api_route("/api/objects/{object_id}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
    async def object_route(object_id: str, request: Request) -> Response:
        current = store.get(object_id)
        if current is None and request.method != "POST":
            raise HTTPException(404, "Not Found")

        if request.method == "DELETE":
            store.delete(object_id)
            _trace(request, "deleted", id=object_id)
            return Response(status_code=200)

        body = await _json_body(request)
        if body is None:
            if current is None:
                raise HTTPException(400, "POST sent with no data. Cannot persist this!")
            return JSONResponse(current)

        if request.method == "PATCH" and "objectModification" in body:
            try:
                delta = ModificationEnvelope.model_validate(body).to_delta()
            except ValidationError as e:
                raise HTTPException(400, f"Invalid objectModification: {e.errors()}") from None
            updated = apply_operations(current or {}, [delta])
            _trace(request, "item delta applied", id=object_id, op=delta.modification_type, path=delta.path)
            return JSONResponse(store.put(object_id, updated))

        _trace(request, "replaced", id=object_id)
        return JSONResponse(store.put(object_id, body))

    if static_dir:
        app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    return app


def _load_objects(path: str | None) -> dict[str, Any]:
    if not path:
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise SystemExit(f"{path}: expected a JSON object of id -> object")
    return data


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="cw-rest-fakeserver", description="In-memory JSON object API")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", type=int, default=8080, help="Port to listen on")
    parser.add_argument("--objects", default=None, help="JSON file with initial objects (id -> object)")
    parser.add_argument("--static-dir", default=None, help="Directory served under /static")
    parser.add_argument("--debug", action="store_true", help="Log every request")
    args = parser.parse_args(argv)

    app = create_app(_load_objects(args.objects), static_dir=args.static_dir, debug=args.debug)
    print(f"\ncw-rest fake server on http://{args.host}:{args.port}/api/objects\n")
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level=("debug" if args.debug else "warning"),
        access_log=args.debug,
    )


if __name__ == "__main__":
    main()
