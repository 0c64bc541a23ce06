"""Test fixtures for conf-request-api unit tests."""

from dataclasses import dataclass, field

import pytest

from app.core.context import Conf, Contact
from app.core.lifespan import State
from app.core.navigation import NavigationState
from app.core.request import Qrequest
from app.core.session import SessionBackend
from app.repositories.taganno import TagAnnoRepository


# -----------------------------------------------------------------------------
# Mock classes for Robyn Request
# -----------------------------------------------------------------------------


@dataclass
class MockHeaders:
    """Mock Headers object for Robyn Request."""

    _data: dict = field(default_factory=dict)

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._data.get(key, default)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def get_headers(self) -> dict:
        return dict(self._data)

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __setitem__(self, key: str, value: str) -> None:
        self._data[key] = value


@dataclass
class MockQueryParams:
    """Mock QueryParams object: every key maps to a list of values."""

    _data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {k: list(v) for k, v in self._data.items()}


@dataclass
class MockUrl:
    path: str = "/"


@dataclass
class MockRequest:
    """Mock Request object for Robyn."""

    body: str | bytes = ""
    headers: MockHeaders = field(default_factory=MockHeaders)
    query_params: MockQueryParams = field(default_factory=MockQueryParams)
    form_data: dict = field(default_factory=dict)
    files: dict = field(default_factory=dict)
    method: str = "GET"
    url: MockUrl = field(default_factory=MockUrl)


# -----------------------------------------------------------------------------
# Conference fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def repo(tmp_path) -> TagAnnoRepository:
    """Empty tag annotation store on disk."""
    return TagAnnoRepository(tmp_path / "conf.sqlite3")


@pytest.fixture
def conf(repo: TagAnnoRepository) -> Conf:
    return Conf(session_key="testconf", chair_emails=frozenset({"chair@example.org"}), tag_annos=repo)


@pytest.fixture
def chair(conf: Conf) -> Contact:
    return conf.contact("chair@example.org", contact_id=1)


@pytest.fixture
def author(conf: Conf) -> Contact:
    return conf.contact("author@example.org", contact_id=7)


@pytest.fixture
def make_qreq(conf: Conf):
    """Factory fixture for requests bound to the test conference."""

    def _make(method: str = "GET", user: Contact | None = None, **params) -> Qrequest:
        qreq = Qrequest(method, params).set_navigation(NavigationState(page="api", path="/taganno"))
        qreq.set_conf(conf)
        qreq.set_user(user or conf.contact(None))
        return qreq

    return _make


# -----------------------------------------------------------------------------
# State fixture
# -----------------------------------------------------------------------------


@pytest.fixture
def app_state(conf: Conf) -> State:
    """App state as the lifespan events would build it."""
    state = State()
    state.sessions = SessionBackend()
    state.tag_annos = conf.tag_annos
    state.conf = conf
    yield state
    state.clear()


@pytest.fixture
def make_mock_request():
    """Factory fixture to create mock Robyn requests."""

    def _make(
        method: str = "GET",
        path: str = "/",
        query: dict | None = None,
        headers: dict | None = None,
        **kwargs,
    ) -> MockRequest:
        return MockRequest(
            method=method,
            url=MockUrl(path),
            query_params=MockQueryParams(query or {}),
            headers=MockHeaders(headers or {}),
            **kwargs,
        )

    return _make
