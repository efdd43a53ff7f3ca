"""
JSON-tree database abstraction with Firebase, SQL and in-memory implementations.

Every record in the app lives at a slash separated path inside one JSON tree,
the way the Firebase Realtime Database stores it. The operation modules only
talk to the `TreeStore` protocol, so the same code runs against Firebase,
a SQL table (for self-hosting) or a process-local dict in tests.
"""

from __future__ import annotations

import copy
import logging
import random
import threading
import time
from contextlib import contextmanager
from numbers import Number
from typing import Any, Callable, Dict, Iterator, Optional, Protocol

from sqlalchemy import JSON, Column, String, create_engine, delete, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from wallpaper_plus.errors import PermissionDeniedError, is_permission_denied

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]
Unsubscribe = Callable[[], None]

PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"
FORBIDDEN_KEY_CHARS = set(".$#[]")

# Returned by `FirebaseTreeStore._run_query` when the server refuses an unindexed query.
_NO_INDEX = object()


class TreeStore(Protocol):
    """Operations the app needs from the realtime JSON-tree database."""

    def get(self, path: str) -> Any:
        ...

    def set(self, path: str, value: Any) -> None:
        ...

    def update(self, path: str, values: dict) -> None:
        ...

    def push(self, path: str, value: Any) -> str:
        ...

    def remove(self, path: str) -> None:
        ...

    def increment(self, path: str, delta: int = 1) -> int:
        ...

    def query_equal(self, path: str, child: str, value: Any) -> dict:
        ...

    def query_ordered(
        self,
        path: str,
        child: str,
        *,
        start_at: Any = None,
        limit: Optional[int] = None,
    ) -> list[tuple[str, Any]]:
        ...

    def subscribe(self, path: str, callback: Listener) -> Unsubscribe:
        ...


class PushIdGenerator:
    """Chronologically sortable 20 character keys, compatible with Firebase push ids."""

    def __init__(self):
        self._lock = threading.Lock()
        self._last_push_time = 0
        self._last_rand = [0] * 12

    def generate(self, now_ms: Optional[int] = None) -> str:
        now = int(time.time() * 1000) if now_ms is None else now_ms
        with self._lock:
            duplicate = now == self._last_push_time
            self._last_push_time = now

            stamp = []
            for _ in range(8):
                stamp.append(PUSH_CHARS[now % 64])
                now //= 64
            stamp.reverse()

            if not duplicate:
                self._last_rand = [random.randrange(64) for _ in range(12)]
            else:
                # Same millisecond: bump the random suffix so keys stay ordered.
                i = 11
                while i >= 0 and self._last_rand[i] == 63:
                    self._last_rand[i] = 0
                    i -= 1
                if i >= 0:
                    self._last_rand[i] += 1
            return "".join(stamp) + "".join(PUSH_CHARS[r] for r in self._last_rand)


_push_ids = PushIdGenerator()


def generate_push_id() -> str:
    return _push_ids.generate()


def split_path(path: str) -> list[str]:
    segments = [segment for segment in (path or "").split("/") if segment]
    for segment in segments:
        if FORBIDDEN_KEY_CHARS & set(segment):
            raise ValueError(f"Invalid key {segment!r} in path {path!r}")
    return segments


def join_path(*parts: str) -> str:
    return "/".join(segment for part in parts for segment in split_path(part))


def _normalize(value: Any) -> Any:
    """Drop nulls and empty containers; the tree never stores them."""
    if isinstance(value, dict):
        cleaned = {}
        for key, child in value.items():
            child = _normalize(child)
            if child is not None:
                cleaned[str(key)] = child
        return cleaned or None
    if isinstance(value, (list, tuple)):
        cleaned_list = [_normalize(child) for child in value]
        cleaned_list = [child for child in cleaned_list if child is not None]
        return cleaned_list or None
    return value


def _children(node: Any) -> Dict[str, Any]:
    if isinstance(node, dict):
        return node
    if isinstance(node, list):
        return {str(i): child for i, child in enumerate(node) if child is not None}
    return {}


def _get_in(node: Any, segments: list[str]) -> Any:
    for segment in segments:
        node = _children(node).get(segment)
        if node is None:
            return None
    return node


def _set_in(node: Any, segments: list[str], value: Any) -> Any:
    """Return a copy of `node` with `value` written at `segments` (None removes)."""
    if not segments:
        return _normalize(copy.deepcopy(value))
    head, rest = segments[0], segments[1:]
    children = dict(_children(node))
    child = _set_in(children.get(head), rest, value)
    if child is None:
        children.pop(head, None)
    else:
        children[head] = child
    return children or None


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def _same_value(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    return left == right


def _order_key(value: Any) -> tuple:
    """Firebase orderByChild ordering: null, false, true, numbers, strings, objects."""
    if value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (1, int(value))
    if _is_number(value):
        return (2, value)
    if isinstance(value, str):
        return (3, value)
    return (4, 0)


def _filter_equal(node: Any, child: str, value: Any) -> dict:
    return {
        key: record
        for key, record in _children(node).items()
        if isinstance(record, dict) and _same_value(record.get(child), value)
    }


def _order_children(
    node: Any, child: str, start_at: Any, limit: Optional[int]
) -> list[tuple[str, Any]]:
    def child_value(record: Any) -> Any:
        return record.get(child) if isinstance(record, dict) else None

    items = sorted(
        _children(node).items(),
        key=lambda item: (_order_key(child_value(item[1])), item[0]),
    )
    if start_at is not None:
        floor = _order_key(start_at)
        items = [item for item in items if _order_key(child_value(item[1])) >= floor]
    if limit is not None:
        items = items[:limit]
    return [(key, copy.deepcopy(record)) for key, record in items]


def _overlaps(left: list[str], right: list[str]) -> bool:
    shortest = min(len(left), len(right))
    return left[:shortest] == right[:shortest]


class _ListenerRegistry:
    """Value listeners for stores that only see their own writes."""

    def _init_listeners(self) -> None:
        self._listeners: Dict[int, tuple[list[str], str, Listener]] = {}
        self._listener_ids = 0
        self._listeners_lock = threading.Lock()

    def subscribe(self, path: str, callback: Listener) -> Unsubscribe:
        with self._listeners_lock:
            self._listener_ids += 1
            listener_id = self._listener_ids
            self._listeners[listener_id] = (split_path(path), path, callback)
        callback(self.get(path))

        def unsubscribe() -> None:
            with self._listeners_lock:
                self._listeners.pop(listener_id, None)

        return unsubscribe

    def _notify(self, written: list[list[str]]) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners.values())
        for segments, path, callback in listeners:
            if any(_overlaps(segments, changed) for changed in written):
                try:
                    callback(self.get(path))
                except Exception:
                    logger.exception("Listener for %s failed", path or "/")


class InMemoryTreeStore(_ListenerRegistry):
    """Process-local tree for development and tests."""

    def __init__(self, initial: Optional[dict] = None):
        self._root: Any = _normalize(copy.deepcopy(initial)) if initial else None
        self._lock = threading.RLock()
        self._init_listeners()

    def get(self, path: str) -> Any:
        with self._lock:
            return copy.deepcopy(_get_in(self._root, split_path(path)))

    def set(self, path: str, value: Any) -> None:
        segments = split_path(path)
        with self._lock:
            self._root = _set_in(self._root, segments, value)
        self._notify([segments])

    def update(self, path: str, values: dict) -> None:
        base = split_path(path)
        written = []
        with self._lock:
            for key, value in values.items():
                segments = base + split_path(str(key))
                self._root = _set_in(self._root, segments, value)
                written.append(segments)
        self._notify(written)

    def push(self, path: str, value: Any) -> str:
        key = generate_push_id()
        self.set(join_path(path, key), value)
        return key

    def remove(self, path: str) -> None:
        self.set(path, None)

    def increment(self, path: str, delta: int = 1) -> int:
        segments = split_path(path)
        with self._lock:
            current = _get_in(self._root, segments)
            new_value = (current if _is_number(current) else 0) + delta
            self._root = _set_in(self._root, segments, new_value)
        self._notify([segments])
        return new_value

    def query_equal(self, path: str, child: str, value: Any) -> dict:
        return _filter_equal(self.get(path), child, value)

    def query_ordered(
        self,
        path: str,
        child: str,
        *,
        start_at: Any = None,
        limit: Optional[int] = None,
    ) -> list[tuple[str, Any]]:
        return _order_children(self.get(path), child, start_at, limit)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.set("", None)


Base = declarative_base()


class TreeNodeRow(Base):
    """One row per top-level key of the tree (users, wallpapers, ...)."""

    __tablename__ = "tree_nodes"

    key = Column(String, primary_key=True)
    data = Column(JSON, nullable=False)


class SqlTreeStore(_ListenerRegistry):
    """
    SQLAlchemy-backed tree. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).

    Writes lock the affected top-level row, so increments are atomic on
    databases that support SELECT ... FOR UPDATE.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlTreeStore")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)
        self._init_listeners()

    def get(self, path: str) -> Any:
        segments = split_path(path)
        with self.Session() as session:
            if not segments:
                rows = session.execute(select(TreeNodeRow)).scalars().all()
                tree = {row.key: copy.deepcopy(row.data) for row in rows}
                return tree or None
            row = session.get(TreeNodeRow, segments[0])
            if not row:
                return None
            return copy.deepcopy(_get_in(row.data, segments[1:]))

    def _mutate(self, root_key: str, mutate: Callable[[Any], tuple[Any, Any]]) -> Any:
        with self.Session() as session:
            row = session.get(TreeNodeRow, root_key, with_for_update=True)
            current = copy.deepcopy(row.data) if row else None
            new_data, result = mutate(current)
            if new_data is None:
                if row:
                    session.delete(row)
            elif row:
                row.data = new_data
            else:
                session.add(TreeNodeRow(key=root_key, data=new_data))
            session.commit()
            return result

    def _write_many(self, writes: list[tuple[list[str], Any]]) -> None:
        by_root: Dict[str, list[tuple[list[str], Any]]] = {}
        for segments, value in writes:
            if not segments:
                with self.Session() as session:
                    session.execute(delete(TreeNodeRow))
                    session.commit()
                tree = _normalize(copy.deepcopy(value)) or {}
                for key, subtree in _children(tree).items():
                    by_root.setdefault(key, []).append(([], subtree))
                continue
            by_root.setdefault(segments[0], []).append((segments[1:], value))

        for root_key, root_writes in by_root.items():

            def mutate(current, root_writes=root_writes):
                for rest, value in root_writes:
                    current = _set_in(current, rest, value)
                return current, None

            self._mutate(root_key, mutate)
        self._notify([segments for segments, _ in writes])

    def set(self, path: str, value: Any) -> None:
        self._write_many([(split_path(path), value)])

    def update(self, path: str, values: dict) -> None:
        base = split_path(path)
        self._write_many(
            [(base + split_path(str(key)), value) for key, value in values.items()]
        )

    def push(self, path: str, value: Any) -> str:
        key = generate_push_id()
        self.set(join_path(path, key), value)
        return key

    def remove(self, path: str) -> None:
        self.set(path, None)

    def increment(self, path: str, delta: int = 1) -> int:
        segments = split_path(path)
        if not segments:
            raise ValueError("Cannot increment the tree root")

        def mutate(current):
            value = _get_in(current, segments[1:])
            new_value = (value if _is_number(value) else 0) + delta
            return _set_in(current, segments[1:], new_value), new_value

        new_value = self._mutate(segments[0], mutate)
        self._notify([segments])
        return new_value

    def query_equal(self, path: str, child: str, value: Any) -> dict:
        return _filter_equal(self.get(path), child, value)

    def query_ordered(
        self,
        path: str,
        child: str,
        *,
        start_at: Any = None,
        limit: Optional[int] = None,
    ) -> list[tuple[str, Any]]:
        return _order_children(self.get(path), child, start_at, limit)


class FirebaseTreeStore:
    """Firebase Realtime Database through the firebase-admin SDK."""

    def __init__(self, app=None):
        from firebase_admin import db as firebase_db

        self._db = firebase_db
        self._app = app

    def _ref(self, path: str):
        return self._db.reference("/" + join_path(path), app=self._app)

    @contextmanager
    def _translate_errors(self, path: str) -> Iterator[None]:
        from firebase_admin import exceptions as firebase_exceptions

        try:
            yield
        except firebase_exceptions.FirebaseError as e:
            if is_permission_denied(e):
                raise PermissionDeniedError(f"Permission denied at {path or '/'}") from e
            raise

    def get(self, path: str) -> Any:
        with self._translate_errors(path):
            return self._ref(path).get()

    def set(self, path: str, value: Any) -> None:
        value = _normalize(copy.deepcopy(value))
        with self._translate_errors(path):
            if value is None:
                self._ref(path).delete()
            else:
                self._ref(path).set(value)

    def update(self, path: str, values: dict) -> None:
        payload = {
            "/".join(split_path(str(key))): _normalize(copy.deepcopy(value))
            for key, value in values.items()
        }
        with self._translate_errors(path):
            self._ref(path).update(payload)

    def push(self, path: str, value: Any) -> str:
        with self._translate_errors(path):
            return self._ref(path).push(_normalize(copy.deepcopy(value))).key

    def remove(self, path: str) -> None:
        with self._translate_errors(path):
            self._ref(path).delete()

    def increment(self, path: str, delta: int = 1) -> int:
        def bump(current):
            return (current if _is_number(current) else 0) + delta

        with self._translate_errors(path):
            return self._ref(path).transaction(bump)

    def _run_query(self, path: str, child: str, query) -> Any:
        """Run an ordered query, or return `_NO_INDEX` when the rules lack an index for it."""
        from firebase_admin import exceptions as firebase_exceptions

        try:
            with self._translate_errors(path):
                return query.get()
        except firebase_exceptions.InvalidArgumentError as e:
            if "index not defined" not in str(e).lower():
                raise
            logger.warning(
                'Using an unspecified index for %s. Add ".indexOn": "%s" to your database rules',
                path or "/",
                child,
            )
            return _NO_INDEX

    def query_equal(self, path: str, child: str, value: Any) -> dict:
        result = self._run_query(path, child, self._ref(path).order_by_child(child).equal_to(value))
        if result is _NO_INDEX:
            return _filter_equal(self.get(path), child, value)
        return dict(_children(result))

    def query_ordered(
        self,
        path: str,
        child: str,
        *,
        start_at: Any = None,
        limit: Optional[int] = None,
    ) -> list[tuple[str, Any]]:
        query = self._ref(path).order_by_child(child)
        if start_at is not None:
            query = query.start_at(start_at)
        if limit is not None:
            query = query.limit_to_first(limit)
        result = self._run_query(path, child, query)
        if result is _NO_INDEX:
            return _order_children(self.get(path), child, start_at, limit)
        return list(_children(result).items())

    def subscribe(self, path: str, callback: Listener) -> Unsubscribe:
        ref = self._ref(path)

        def on_event(event) -> None:
            # Events carry deltas; listeners want the whole node.
            callback(ref.get())

        with self._translate_errors(path):
            registration = ref.listen(on_event)
        return registration.close


def object_to_array(tree_object: Optional[dict]) -> list[dict]:
    """Turn a `{key: record}` map into a list of `{"id": key, **record}`."""
    if not tree_object:
        return []
    return [
        {"id": key, **(record if isinstance(record, dict) else {})}
        for key, record in _children(tree_object).items()
    ]


def get_paginated_data(
    store: TreeStore,
    path: str,
    order_by: str = "createdAt",
    limit: int = 20,
    start_after: Any = None,
) -> dict:
    """One page of children ordered by `order_by`.

    When `start_after` is given one extra record is requested, which is what
    makes `hasMore` true.
    """
    if start_after is not None:
        items = store.query_ordered(path, order_by, start_at=start_after, limit=limit + 1)
    else:
        items = store.query_ordered(path, order_by, limit=limit)
    data = dict(items)
    return {"data": object_to_array(data), "hasMore": len(data) > limit}
