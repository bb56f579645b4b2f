# /cw_rest/_object.py
# CrossWatch REST - declarative CRUD for one remote JSON object
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field, fields
from typing import Any, Iterable, Mapping

import jsonpatch

from . import _paths
from ._delta import get_delta, normalize_null_fields
from ._errors import (
    ConfigError,
    IdMissingError,
    IdRequiredError,
    InternalInvariantError,
    KeyPathError,
    NotFoundError,
    RemoteError,
    ShapeMismatchError,
)
from ._filter import filter_keys
from ._jsonpath import decode_map, flat_string, get_object_at_key, get_string_at_key
from ._log import log
from ._modification import MODIFICATION_METHOD, compute_operations
from ._transport import Transport
from .config_base import check_method

_GONE = (404, 410)


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


_PATCH_ERRORS = (jsonpatch.JsonPatchException, jsonpatch.JsonPointerException)


def _compile_patch(raw: Any) -> jsonpatch.JsonPatch | None:
    """RFC 6902 patch from a JSON string or an already decoded list of operations."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    try:
        if isinstance(raw, str):
            return jsonpatch.JsonPatch.from_string(raw)
        return jsonpatch.JsonPatch(list(raw))
    except _PATCH_ERRORS + (ValueError, TypeError) as e:
        raise ConfigError(f"failed to compile search_patch: {e}") from e


@dataclass
class ReadSearch:
    search_key: str = ""
    search_value: str = ""
    results_key: str = ""
    query_string: str = ""
    search_data: Any = None
    search_patch: Any = None

    @classmethod
    def from_mapping(cls, m: "ReadSearch | Mapping[str, Any] | None") -> "ReadSearch | None":
        if m is None or isinstance(m, ReadSearch):
            return m
        known = {f.name for f in fields(cls)}
        unknown = set(m) - known
        if unknown:
            raise ConfigError(f"read_search: unknown keys {sorted(unknown)}")
        return cls(**{k: ("" if v is None and k not in ("search_data", "search_patch") else v) for k, v in m.items()})

    @property
    def active(self) -> bool:
        return bool(self.search_key and self.search_value)


@dataclass
class ObjectOptions:
    path: str = ""
    create_path: str = ""
    read_path: str = ""
    update_path: str = ""
    destroy_path: str = ""
    search_path: str = ""
    create_method: str = ""
    read_method: str = ""
    update_method: str = ""
    destroy_method: str = ""
    id_attribute: str = ""
    object_id: str = ""
    query_string: str = ""
    read_query_string: str = ""
    data: Any = None
    read_data: Any = None
    update_data: Any = None
    destroy_data: Any = None
    read_search: ReadSearch | Mapping[str, Any] | None = None
    filter_keys: tuple[str, ...] = field(default_factory=tuple)
    modification_wrapper: str = ""
    debug: bool = False


class ApiObject:
    """
    One remote object, described by path templates and a desired JSON tree.

    Build a fresh ApiObject per operation; the only state worth keeping between
    calls is `id` and `api_data`. Outputs after a successful sync:
      id            current id ("" once the server says it is gone)
      data          desired tree (copy_keys merged in)
      api_tree      last decoded server tree, filter_keys removed
      api_data      api_tree flattened to {key: str}
      api_response  last raw response body
    """

    def __init__(self, transport: Transport, opts: ObjectOptions | None = None, **kwargs: Any):
        if opts is None:
            opts = ObjectOptions(**kwargs)
        elif kwargs:
            raise TypeError("pass either an ObjectOptions or keyword options, not both")

        self.transport = transport
        tc = transport.cfg
        self.debug = bool(opts.debug or tc.debug)

        base = str(opts.path or "")
        self.create_path = opts.create_path or base
        self.read_path = opts.read_path or (_paths.append_id(base) if base else "")
        self.update_path = opts.update_path or (_paths.append_id(base) if base else "")
        self.destroy_path = opts.destroy_path or (_paths.append_id(base) if base else "")
        self.search_path = opts.search_path or base

        self.create_method = check_method("create_method", opts.create_method or tc.create_method)
        self.read_method = check_method("read_method", opts.read_method or tc.read_method)
        self.update_method = check_method("update_method", opts.update_method or tc.update_method)
        self.destroy_method = check_method("destroy_method", opts.destroy_method or tc.destroy_method)

        self.id_attribute = opts.id_attribute or tc.id_attribute
        self.query_string = str(opts.query_string or "")
        self.read_query_string = str(opts.read_query_string or "")
        self.read_search = ReadSearch.from_mapping(opts.read_search)
        self.search_patch = _compile_patch(self.read_search.search_patch if self.read_search else None)
        self.filter_keys = tuple(str(k) for k in opts.filter_keys or ())
        self.modification_wrapper = str(opts.modification_wrapper or "")

        self.data: dict[str, Any] = decode_map(opts.data, "data") or {}
        self.read_data = self._payload(opts.read_data, tc.read_data, "read_data")
        self.update_data = self._payload(opts.update_data, tc.update_data, "update_data")
        self.destroy_data = self._payload(opts.destroy_data, tc.destroy_data, "destroy_data")

        self.id = str(opts.object_id or "")
        self.api_tree: dict[str, Any] = {}
        self.api_response = ""

        if not self.id and self.data:
            try:
                self.id = get_string_at_key(self.data, self.id_attribute)
                log("OBJECT", "init", "debug", "id taken from data", debug=self.debug, id=self.id)
            except KeyPathError:
                if not self._can_discover_id():
                    raise IdRequiredError(
                        f"provided data does not have '{self.id_attribute}' attribute for the object's id "
                        "and the client is not configured to read the object from a write response or a search; "
                        "without an id, the object cannot be managed"
                    ) from None

        log("OBJECT", "init", "debug", "constructed", debug=self.debug, object=repr(self))

    def __repr__(self) -> str:
        return (
            f"ApiObject(id={self.id!r}, id_attribute={self.id_attribute!r}, "
            f"create={self.create_method} {self.create_path!r}, read={self.read_method} {self.read_path!r}, "
            f"update={self.update_method} {self.update_path!r}, destroy={self.destroy_method} {self.destroy_path!r})"
        )

    @staticmethod
    def _payload(own: Any, inherited: Mapping[str, Any] | None, what: str) -> dict[str, Any] | None:
        value = decode_map(own, what)
        if value is None and inherited is not None:
            value = copy.deepcopy(dict(inherited))
        return value

    def _can_discover_id(self) -> bool:
        tc = self.transport.cfg
        return tc.write_returns_object or tc.create_returns_object or bool(self.read_search and self.read_search.active)

    def _path(self, template: str, what: str) -> str:
        if not template:
            raise ConfigError(f"{what} path is not configured; set 'path' or '{what}_path'")
        return _paths.resolve(template, self.id, self.query_string)

    def _send(self, method: str, path: str, body: str = "") -> str:
        return self.transport.send(method, path, body)

    # outputs

    @property
    def api_data(self) -> dict[str, str]:
        return {str(k): flat_string(v) for k, v in self.api_tree.items()}

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "data": copy.deepcopy(self.data),
            "api_data": self.api_data,
            "api_response": self.api_response,
        }

    # sync

    def _sync(self, body: str) -> None:
        try:
            tree = json.loads(body)
        except ValueError as e:
            raise ShapeMismatchError(f"response is not valid JSON: {e}") from e
        if not isinstance(tree, dict):
            raise ShapeMismatchError(f"response is a JSON {type(tree).__name__}, expected an object")
        self.api_response = body
        self._sync_tree(tree)

    def _sync_tree(self, tree: dict[str, Any]) -> None:
        if self.filter_keys:
            filter_keys(tree, self.filter_keys)

        if not self.id:
            try:
                self.id = get_string_at_key(tree, self.id_attribute)
            except KeyPathError as e:
                raise IdMissingError(f"error extracting id from data element: {e}") from e
            if not self.id:
                raise IdMissingError(f"id attribute '{self.id_attribute}' is empty in the response")
        else:
            log("OBJECT", "sync", "trace", "id already set", debug=self.debug, id=self.id)

        for key in self.transport.cfg.copy_keys:
            if key in tree:
                self.data[key] = copy.deepcopy(tree[key])

        self.api_tree = tree

    # search

    def _search(
        self,
        search_key: str,
        search_value: str,
        *,
        results_key: str = "",
        query_string: str = "",
        search_data: Any = None,
    ) -> dict[str, Any]:
        if not self.search_path:
            raise ConfigError("search path is not configured; set 'path' or 'search_path'")
        qs = _paths.merge_query(query_string, self.query_string)
        path = _paths.resolve(self.search_path, self.id, qs)
        body = search_data if isinstance(search_data, str) else (_dumps(search_data) if search_data else "")

        log("OBJECT", "search", "debug", f"searching {path}", debug=self.debug, key=search_key, value=search_value)
        raw = self._send(self.transport.cfg.read_method, path, body)
        try:
            result = json.loads(raw)
        except ValueError as e:
            raise ShapeMismatchError(f"search response from '{path}' is not valid JSON: {e}") from e

        if results_key:
            if not isinstance(result, dict):
                raise ShapeMismatchError(
                    f"the results of a search at '{path}' did not return a map; cannot look for results_key '{results_key}'"
                )
            items = get_object_at_key(result, results_key)
            if not isinstance(items, list):
                raise ShapeMismatchError(f"the data at results_key '{results_key}' is a {type(items).__name__}, not a list")
        else:
            items = result
            if not isinstance(items, list):
                raise ShapeMismatchError(
                    f"the results of a search at '{path}' are a {type(items).__name__}, not a list; perhaps you meant to set results_key?"
                )

        for item in items:
            if not isinstance(item, dict):
                raise ShapeMismatchError("the elements being searched are not maps of key/value pairs")
            try:
                value = get_string_at_key(item, search_key)
            except KeyPathError:
                continue
            if value != search_value:
                continue
            try:
                found = get_string_at_key(item, self.id_attribute)
            except KeyPathError as e:
                raise IdMissingError(f"failed to find id_attribute '{self.id_attribute}' in the record: {e}") from e
            if not found:
                raise IdMissingError(
                    f"the object for '{search_key}'='{search_value}' has an empty id attribute '{self.id_attribute}'"
                )
            self.id = found
            log("OBJECT", "search", "debug", "match", debug=self.debug, id=found)
            return item

        raise NotFoundError(f"failed to find an object with '{search_key}' = '{search_value}' at {path}")

    def find(
        self,
        search_key: str,
        search_value: str,
        *,
        results_key: str = "",
        query_string: str = "",
        search_data: Any = None,
    ) -> dict[str, Any]:
        return self._search(
            search_key,
            search_value,
            results_key=results_key,
            query_string=query_string,
            search_data=search_data,
        )

    def _read_search(self) -> None:
        rs = self.read_search
        assert rs is not None
        value = _paths.substitute(rs.search_value, self.id)
        record = self._search(
            rs.search_key,
            value,
            results_key=rs.results_key,
            query_string=rs.query_string,
            search_data=rs.search_data,
        )
        if self.search_patch is not None:
            try:
                record = self.search_patch.apply(record)
            except _PATCH_ERRORS as e:
                raise ShapeMismatchError(f"failed to apply search_patch: {e}") from e
            if not isinstance(record, dict):
                raise ShapeMismatchError("search_patch did not produce a JSON object")
            log("OBJECT", "search", "debug", "search_patch applied", debug=self.debug, id=self.id)
        self.api_response = _dumps(record)
        self._sync_tree(record)

    # CRUD

    def create(self) -> None:
        tc = self.transport.cfg
        returns_object = tc.write_returns_object or tc.create_returns_object
        searchable = bool(self.read_search and self.read_search.active)
        if not self.id and not returns_object and not searchable:
            raise IdRequiredError(
                "provided object does not have an id set and the client is not configured to read the object "
                "from a write response; set write_returns_object, or include an id in the object's data"
            )

        path = self._path(self.create_path, "create")
        result = self._send(self.create_method, path, _dumps(self.data))

        if returns_object:
            self._sync(result)
        elif not self.id:
            log("OBJECT", "create", "debug", "locating created object by search", debug=self.debug)
            self._read_search()
        else:
            self.read()

        if not self.id:
            raise InternalInvariantError("object id is not set after create, but the object *may* have been created")

    def read(self) -> None:
        if not self.id:
            raise IdRequiredError("cannot read an object unless the id has been set")

        if not self.read_path:
            raise ConfigError("read path is not configured; set 'path' or 'read_path'")
        path = _paths.resolve(self.read_path, self.id, self.read_query_string or self.query_string)
        body = _dumps(self.read_data) if self.read_data is not None else ""
        try:
            result = self._send(self.read_method, path, body)
        except RemoteError as e:
            if e.code == 404:
                log("OBJECT", "read", "warn", "404 while reading, object is gone", debug=self.debug, id=self.id, path=path)
                self.id = ""
                return
            raise

        if self.read_search and self.read_search.active:
            self._read_search()
            return
        self._sync(result)

    def exists(self) -> bool:
        self.read()
        return bool(self.id)

    def update(self) -> None:
        if not self.id:
            raise IdRequiredError("cannot update an object unless the id has been set")

        if self.update_method == MODIFICATION_METHOD:
            self._update_granular()
            return

        if self.transport.cfg.copy_keys:
            self._refresh_or_fail()

        body = _dumps(self.update_data if self.update_data is not None else self.data)
        path = self._path(self.update_path, "update")
        result = self._send(self.update_method, path, body)
        if self.transport.cfg.write_returns_object:
            self._sync(result)
        else:
            self.read()

    def _refresh_or_fail(self) -> None:
        object_id = self.id
        self.read()
        if not self.id:
            raise NotFoundError(f"object '{object_id}' no longer exists on the server")

    def _update_granular(self) -> None:
        if not self.api_tree:
            self._refresh_or_fail()

        ops = compute_operations(
            self.api_tree,
            self.data,
            id_attribute=self.id_attribute,
            wrapper=self.modification_wrapper,
        )
        path = self._path(self.update_path, "update")
        log("OBJECT", "update", "debug", f"{len(ops)} item deltas", debug=self.debug, id=self.id)

        result = ""
        for op in ops:
            result = self._send(self.update_method, path, _dumps(op.envelope()))

        if ops and self.transport.cfg.write_returns_object:
            self._sync(result)
        else:
            self.read()

    def destroy(self) -> None:
        if not self.id:
            log("OBJECT", "destroy", "warn", "object has no id, nothing to delete", debug=self.debug)
            return

        path = self._path(self.destroy_path, "destroy")
        body = _dumps(self.destroy_data) if self.destroy_data is not None else ""
        try:
            self._send(self.destroy_method, path, body)
        except RemoteError as e:
            if e.code not in _GONE:
                raise
            log("OBJECT", "destroy", "warn", f"{e.code} while deleting, assuming already gone", debug=self.debug, id=self.id)

    # drift

    def changes(
        self,
        ignore_list: Iterable[str] | None = None,
        *,
        ignore_server_additions: bool = False,
    ) -> tuple[dict[str, Any], bool]:
        """Desired tree vs. last server tree: (projected desired, has changes)."""
        desired = copy.deepcopy(self.data)
        normalize_null_fields(desired, self.api_tree)
        return get_delta(desired, self.api_tree, ignore_list, ignore_server_additions=ignore_server_additions)

    # alternate constructors

    @classmethod
    def lookup(
        cls,
        transport: Transport,
        search_key: str,
        search_value: str,
        *,
        results_key: str = "",
        query_string: str = "",
        search_data: Any = None,
        read_query_string: str = "",
        **opts: Any,
    ) -> "ApiObject":
        """Find an object by search, then read it in full."""
        if read_query_string:
            opts["read_query_string"] = read_query_string
        obj = cls(transport, **opts)
        obj.find(
            search_key,
            search_value,
            results_key=results_key,
            query_string=query_string,
            search_data=search_data,
        )
        obj.read()
        if not obj.id:
            raise NotFoundError(f"object '{search_key}'='{search_value}' vanished between search and read")
        return obj

    @classmethod
    def from_import(cls, transport: Transport, import_path: str, **opts: Any) -> "ApiObject":
        """Build and read an object from '/<collection path>/<id>'."""
        path, object_id = _paths.split_import_path(import_path)
        opts.setdefault("path", path)
        opts["object_id"] = object_id
        opts.setdefault("data", {"id": object_id})
        obj = cls(transport, **opts)
        obj.read()
        if not obj.id:
            raise NotFoundError(f"nothing to import at '{import_path}'")
        return obj


__all__ = ["ApiObject", "ObjectOptions", "ReadSearch"]
