import importlib
import uuid
from dataclasses import replace
from types import SimpleNamespace

import pytest

from autobrief.application.chat_service import ChatService
from autobrief.application.intake_service import IntakeService
from autobrief.application.payment_service import PaymentService
from autobrief.core.domain.user import User

fastapi = pytest.importorskip("fastapi")
TestClient = pytest.importorskip("fastapi.testclient").TestClient


class MemoryUserRepository:
    def __init__(self):
        self.users = {}

    def create_user(self, email, password_hash, full_name):
        user = User(user_id=str(uuid.uuid4()), email=email.lower(), password_hash=password_hash, full_name=full_name)
        self.users[user.user_id] = user
        return user

    def get_by_email(self, email):
        return next((u for u in self.users.values() if u.email == email.lower()), None)

    def get_by_id(self, user_id):
        return self.users.get(user_id)

    def set_plan(self, user_id, plan):
        user = self.users.get(user_id)
        if user is None:
            return None
        self.users[user_id] = replace(user, plan=plan)
        return self.users[user_id]


class EmptyLedger:
    def __init__(self, users):
        self.users = users
        self.signatures = set()

    def exists(self, signature):
        return signature in self.signatures

    def record_and_upgrade(self, signature, user_id, plan, amount):
        if signature in self.signatures:
            return None
        self.signatures.add(signature)
        return self.users.set_plan(user_id, plan)


class ScriptedChatModel:
    def __init__(self):
        self.chunks = ["Hello", " there"]
        self.error = None
        self.requests = []

    def stream_chat(self, messages):
        if self.error is not None:
            raise self.error
        self.requests.append(messages)
        return iter(self.chunks)


class StaticRpc:
    def __init__(self):
        self.tx = None

    def get_parsed_transaction(self, signature):
        return self.tx


@pytest.fixture
def app_modules(monkeypatch):
    """
    Load the app with rate limiting disabled; the real lifespan (pool, schema) is never run.
    """
    monkeypatch.setenv("JWT_SECRET", "x" * 32)
    app_module = importlib.import_module("autobrief.main")
    dependencies = importlib.import_module("autobrief.interfaces.api.dependencies")
    monkeypatch.setattr(dependencies.rate_limit, "enforce", lambda *args, **kwargs: None)
    yield {"app": app_module.app, "dependencies": dependencies}
    app_module.app.dependency_overrides.clear()


@pytest.fixture
def container(settings, repo, object_store, trigger, scripted_feed):
    users = MemoryUserRepository()
    rpc = StaticRpc()
    chat_model = ScriptedChatModel()
    return SimpleNamespace(
        settings=settings,
        summaries=repo,
        users=users,
        store=object_store,
        trigger=trigger,
        rpc=rpc,
        feed=scripted_feed(),
        intake=IntakeService(repo, object_store, trigger, settings, clock=lambda: 1700000000.5),
        payment=PaymentService(rpc, EmptyLedger(users), settings),
        chat_model=chat_model,
        chat=ChatService(chat_model),
    )


@pytest.fixture
def client(app_modules, container):
    app = app_modules["app"]
    app.dependency_overrides[app_modules["dependencies"].get_container] = lambda: container
    return TestClient(app)


@pytest.fixture
def login_as(app_modules, container):
    """Registers `user` in the fake repository and bypasses bearer auth for it."""

    def _login(user):
        container.users.users[user.user_id] = user
        deps = app_modules["dependencies"]
        app = app_modules["app"]
        app.dependency_overrides[deps.get_current_user] = lambda: container.users.get_by_id(user.user_id)
        app.dependency_overrides[deps.get_optional_user] = lambda: container.users.get_by_id(user.user_id)
        return user

    return _login
