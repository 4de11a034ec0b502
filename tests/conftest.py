"""Pytest configuration and fixtures for tests."""

from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import pytest
from bson import ObjectId
from prometheus_client import CollectorRegistry
from pymongo.errors import ServerSelectionTimeoutError

from focusrank.repositories import (
    FriendshipRepository,
    SessionRepository,
    TaskRepository,
    UserRepository,
)
from focusrank.server.controllers.leaderboard_handler import LeaderboardController
from focusrank.utils.identity import TokenService

NOW = datetime(2026, 3, 31, 12, 0, tzinfo=timezone.utc)
TEST_JWT_SECRET = "test-secret"

_MISSING = object()


def _get_path(document: Dict[str, Any], dotted: str) -> Any:
    value: Any = document
    for part in dotted.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _compare(value: Any, operator: str, operand: Any) -> bool:
    if operator == "$in":
        return value is not _MISSING and value in operand
    if value is _MISSING or value is None:
        return False
    try:
        if operator == "$gt":
            return value > operand
        if operator == "$gte":
            return value >= operand
        if operator == "$lt":
            return value < operand
        if operator == "$lte":
            return value <= operand
    except TypeError:
        return False
    if operator == "$ne":
        return value != operand
    raise NotImplementedError(f"FakeCollection does not support {operator}")


def _matches(document: Dict[str, Any], filter_query: Optional[Dict[str, Any]]) -> bool:
    for key, expected in (filter_query or {}).items():
        if key == "$or":
            if not any(_matches(document, clause) for clause in expected):
                return False
            continue
        if key == "$and":
            if not all(_matches(document, clause) for clause in expected):
                return False
            continue

        value = _get_path(document, key)
        if isinstance(expected, dict) and expected and all(
            op.startswith("$") for op in expected
        ):
            if not all(_compare(value, op, operand) for op, operand in expected.items()):
                return False
        elif value is _MISSING or value != expected:
            return False
    return True


def _evaluate(document: Dict[str, Any], expr: Any) -> Any:
    if isinstance(expr, str) and expr.startswith("$"):
        value = _get_path(document, expr[1:])
        return None if value is _MISSING else value
    if isinstance(expr, dict) and "$ifNull" in expr:
        value, fallback = expr["$ifNull"]
        resolved = _evaluate(document, value)
        return resolved if resolved is not None else _evaluate(document, fallback)
    return expr


def _project(document: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
    projected: Dict[str, Any] = {}
    if fields.get("_id", 1) and "_id" in document:
        projected["_id"] = document["_id"]
    for dotted, keep in fields.items():
        value = _get_path(document, dotted)
        if dotted == "_id" or not keep or value is _MISSING:
            continue
        target = projected
        *parents, leaf = dotted.split(".")
        for part in parents:
            target = target.setdefault(part, {})
        target[leaf] = value
    return projected


def _sort_documents(documents: List[Dict[str, Any]], order) -> List[Dict[str, Any]]:
    items = list(order.items()) if isinstance(order, dict) else list(order)
    docs = list(documents)
    # Stable sorts applied from the least significant key
    for field, direction in reversed(items):
        docs.sort(
            key=lambda d, f=field: (
                _get_path(d, f) is not _MISSING,
                _get_path(d, f) if _get_path(d, f) is not _MISSING else 0,
            ),
            reverse=direction == -1,
        )
    return docs


class FakeCursor:
    """Chainable sort/skip/limit over a snapshot of documents."""

    def __init__(self, documents: List[Dict[str, Any]]):
        self._documents = documents
        self._skip = 0
        self._limit = 0

    def sort(self, order, direction: Optional[int] = None):
        if isinstance(order, str):
            order = [(order, direction or 1)]
        self._documents = _sort_documents(self._documents, order)
        return self

    def skip(self, count: int):
        self._skip = count
        return self

    def limit(self, count: int):
        self._limit = count
        return self

    def __iter__(self):
        docs = self._documents[self._skip:]
        if self._limit:
            docs = docs[: self._limit]
        return iter(deepcopy(docs))


class FakeCollection:
    """Minimal PyMongo-like collection for deterministic unit tests."""

    def __init__(self, documents: Iterable[Dict[str, Any]] = (), database=None):
        self._documents: List[Dict[str, Any]] = [deepcopy(doc) for doc in documents]
        self._database = database
        # Operation names to fail, e.g. "find" or a pipeline stage "aggregate:$count"
        self.fail_on: set = set()

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise ServerSelectionTimeoutError(f"{operation} timed out")

    def clear(self) -> None:
        self._documents.clear()
        self.fail_on.clear()

    def insert_one(self, document: Dict[str, Any]):
        doc = deepcopy(document)
        doc.setdefault("_id", ObjectId())
        self._documents.append(doc)
        return doc["_id"]

    def insert_many(self, documents: Iterable[Dict[str, Any]]):
        return [self.insert_one(doc) for doc in documents]

    def find(self, filter_query=None, projection=None):
        self._check("find")
        return FakeCursor([doc for doc in self._documents if _matches(doc, filter_query)])

    def find_one(self, filter_query=None, projection=None):
        self._check("find_one")
        for doc in self._documents:
            if _matches(doc, filter_query):
                return deepcopy(doc)
        return None

    def count_documents(self, filter_query):
        self._check("count_documents")
        return sum(1 for doc in self._documents if _matches(doc, filter_query))

    def distinct(self, field: str, filter_query=None):
        self._check("distinct")
        values = []
        for doc in self._documents:
            if not _matches(doc, filter_query):
                continue
            value = _get_path(doc, field)
            if value is not _MISSING and value not in values:
                values.append(value)
        return values

    def aggregate(self, pipeline: List[Dict[str, Any]]):
        self._check("aggregate")
        for stage in pipeline:
            self._check(f"aggregate:{next(iter(stage))}")
        return iter(self._run_pipeline(deepcopy(self._documents), pipeline))

    def _run_pipeline(self, docs: List[Dict[str, Any]], pipeline) -> List[Dict[str, Any]]:
        for stage in pipeline:
            (name, arg), = stage.items()
            if name == "$match":
                docs = [doc for doc in docs if _matches(doc, arg)]
            elif name == "$group":
                docs = self._group(docs, arg)
            elif name == "$sort":
                docs = _sort_documents(docs, arg)
            elif name == "$skip":
                docs = docs[arg:]
            elif name == "$limit":
                docs = docs[:arg]
            elif name == "$project":
                docs = [_project(doc, arg) for doc in docs]
            elif name == "$addFields":
                for doc in docs:
                    doc.update({key: _evaluate(doc, expr) for key, expr in arg.items()})
            elif name == "$lookup":
                docs = [self._lookup(doc, arg) for doc in docs]
            elif name == "$unwind":
                field = arg[1:]
                docs = [{**doc, field: item} for doc in docs for item in doc.get(field) or []]
            elif name == "$count":
                docs = [{arg: len(docs)}] if docs else []
            else:
                raise NotImplementedError(f"FakeCollection does not support {name}")
        return docs

    def _lookup(self, doc: Dict[str, Any], arg: Dict[str, Any]) -> Dict[str, Any]:
        foreign = self._database[arg["from"]]
        key = _get_path(doc, arg["localField"])
        joined = [
            deepcopy(other)
            for other in foreign._documents
            if _get_path(other, arg["foreignField"]) == key
        ]
        doc[arg["as"]] = foreign._run_pipeline(joined, arg.get("pipeline", []))
        return doc

    @staticmethod
    def _group(docs: List[Dict[str, Any]], stage: Dict[str, Any]) -> List[Dict[str, Any]]:
        key_expr = stage["_id"]
        groups: Dict[Any, Dict[str, Any]] = {}
        for doc in docs:
            key = _get_path(doc, key_expr[1:]) if isinstance(key_expr, str) else key_expr
            key = None if key is _MISSING else key
            group = groups.setdefault(key, {"_id": key})
            for out_field, accumulator in stage.items():
                if out_field == "_id":
                    continue
                operand = accumulator["$sum"]
                if isinstance(operand, str) and operand.startswith("$"):
                    operand = _get_path(doc, operand[1:])
                    operand = 0 if operand is _MISSING or operand is None else operand
                group[out_field] = group.get(out_field, 0) + operand
        return list(groups.values())


class FakeMongoDatabase:
    """Dictionary-like facade returning fake collections by name."""

    def __init__(self):
        self._collections: Dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self._collections:
            self._collections[name] = FakeCollection(database=self)
        return self._collections[name]

    def clear(self) -> None:
        for collection in self._collections.values():
            collection.clear()


class FakeDBController:
    """Stands in for DBController with an in-memory database."""

    def __init__(self, db: Optional[FakeMongoDatabase] = None):
        self.db = db if db is not None else FakeMongoDatabase()
        self.client = None
        self.db_name = "focusrank-test"

    def connect(self) -> bool:
        return True


def make_user(
    db: FakeMongoDatabase,
    name: Optional[str] = None,
    level: int = 1,
    xp: int = 0,
    country: str = "",
    streak_days: int = 0,
    best_streak: int = 0,
    email: Optional[str] = None,
    username: Optional[str] = None,
    user_id: Optional[ObjectId] = None,
) -> ObjectId:
    local = (name or "user").lower().replace(" ", ".")
    doc = {
        "_id": user_id or ObjectId(),
        "email": email or f"{local}@example.com",
        "name": name,
        "avatar_url": None,
        "profile": {
            "level": level,
            "xp": xp,
            "country": country,
            "streak_days": streak_days,
            "best_streak": best_streak,
        },
    }
    if username:
        doc["username"] = username
    return db["users"].insert_one(doc)


def befriend(db: FakeMongoDatabase, user_id, friend_id, status: str = "accepted") -> None:
    db["friends"].insert_many(
        [
            {"user_id": user_id, "friend_id": friend_id, "status": status},
            {"user_id": friend_id, "friend_id": user_id, "status": status},
        ]
    )


def add_focus_session(
    db: FakeMongoDatabase,
    user_id,
    duration: int,
    start_time: datetime = NOW,
    completed: bool = True,
    session_type: str = "focus",
) -> None:
    db["sessions"].insert_one(
        {
            "userId": user_id,
            "type": session_type,
            "completed": completed,
            "duration": duration,
            "startTime": start_time,
        }
    )


def add_task(
    db: FakeMongoDatabase, user_id, updated_at: datetime = NOW, status: str = "completed"
) -> None:
    db["tasks"].insert_one({"userId": user_id, "status": status, "updatedAt": updated_at})


@pytest.fixture()
def db():
    """Fresh in-memory database per test."""
    return FakeMongoDatabase()


@pytest.fixture()
def repositories(db):
    controller = FakeDBController(db)
    return {
        "users": UserRepository(controller),
        "friends": FriendshipRepository(controller),
        "sessions": SessionRepository(controller),
        "tasks": TaskRepository(controller),
    }


@pytest.fixture()
def leaderboard(repositories):
    """LeaderboardController wired to the in-memory repositories."""
    return LeaderboardController(
        repositories["users"],
        repositories["friends"],
        repositories["sessions"],
        repositories["tasks"],
        clock=lambda: NOW,
    )


@pytest.fixture(scope="session")
def shared_db():
    return FakeMongoDatabase()


@pytest.fixture(scope="session")
def token_service():
    return TokenService(secret_provider=lambda: TEST_JWT_SECRET)


@pytest.fixture(scope="session")
def app_instance(shared_db, token_service):
    """Create the Flask app once for all tests using the real factory."""

    from focusrank.server.app import create_app  # pylint: disable=import-outside-toplevel

    application = create_app(
        db_controller=FakeDBController(shared_db),
        token_service=token_service,
        metrics_registry=CollectorRegistry(),
        clock=lambda: NOW,
    )
    application.config["TESTING"] = True
    application.config["REQUIRE_AUTHENTICATION"] = True
    yield application


@pytest.fixture()
def app_db(app_instance, shared_db):
    """The app's database, emptied before each test."""
    shared_db.clear()
    yield shared_db
    shared_db.clear()


@pytest.fixture()
def client(app_instance):
    """Provide a test client bound to the shared application."""

    with app_instance.test_client() as client:
        yield client


@pytest.fixture()
def auth_headers(token_service):
    def _headers(user_id) -> Dict[str, str]:
        token = token_service.generate({"_id": user_id, "email": None})
        return {"Authorization": f"Bearer {token}"}

    return _headers
