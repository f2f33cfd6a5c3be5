import copy

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import config
import deps
import session as session_module
from database import init_db
from main import app
from session import TokenStore, create_session

ADMIN = {"id": "u-admin", "fullName": "Ada Admin", "email": "ada@example.com", "role": "admin"}
CUSTOMER = {"id": "u-cust", "fullName": "Carl Customer", "email": "carl@example.com", "role": "customer"}


class Replies:
    """Successive answers for one endpoint; the last one repeats."""

    def __init__(self, *answers):
        self.answers = list(answers)

    def next(self):
        if len(self.answers) > 1:
            return self.answers.pop(0)
        return self.answers[0]


class FakeApi:
    """
    Stands in for ApiClient. Records every call and answers from
    `responses`, keyed by (METHOD, endpoint). An answer may be a
    value, an exception to raise, a callable taking the call's
    kwargs, or Replies.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []
        self.token = None
        self.on_unauthorized = None

    def script(self, method, endpoint, answer):
        self.responses[(method, endpoint)] = answer

    def _call(self, method, endpoint, **kwargs):
        self.calls.append((method, endpoint, kwargs))
        answer = self.responses.get((method, endpoint))
        if isinstance(answer, Replies):
            answer = answer.next()
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            return answer(**kwargs)
        return copy.deepcopy(answer)

    def get(self, endpoint, params=None):
        return self._call("GET", endpoint, params=params)

    def post(self, endpoint, data=None, files=None):
        return self._call("POST", endpoint, data=data, files=files)

    def put(self, endpoint, data=None):
        return self._call("PUT", endpoint, data=data)

    def patch(self, endpoint, data=None):
        return self._call("PATCH", endpoint, data=data)

    def delete(self, endpoint):
        return self._call("DELETE", endpoint)

    def calls_to(self, method, endpoint=None):
        return [
            kwargs for m, e, kwargs in self.calls
            if m == method and (endpoint is None or e == endpoint)
        ]


@pytest.fixture(autouse=True)
def reset_sessions():
    session_module._sessions.clear()
    yield
    session_module._sessions.clear()


@pytest.fixture
def token_store():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    return TokenStore(sessionmaker(autocommit=False, autoflush=False, bind=engine))


@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def client(monkeypatch, fake_api, token_store):
    monkeypatch.setattr(deps, "new_api_client", lambda: fake_api)
    monkeypatch.setattr(deps, "token_store", token_store)
    return TestClient(app, follow_redirects=False)


@pytest.fixture
def login_as(client, fake_api, token_store):
    def login(user):
        console = create_session(token_store, api_factory=lambda: fake_api)
        console.sign_in("token-123", user)
        client.cookies.set(config.SESSION_COOKIE, console.session_id)
        return console
    return login


@pytest.fixture
def admin_client(client, login_as):
    login_as(ADMIN)
    return client


@pytest.fixture
def customer_client(client, login_as):
    login_as(CUSTOMER)
    return client
