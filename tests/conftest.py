"""
Shared pytest fixtures for EduPlan tests.

Fixture summary
---------------
Database:
    db_path              -- temp .db file path with cleanup
    db_engine            -- initialized engine bound to db_path

Config:
    mock_config          -- standard config dict using the mock client

Generation:
    stub_client          -- StubClient returning fixed plans and tests
    build_plan           -- factory for LessonPlan objects
    build_test           -- factory for objective Test objects
    sample_plan          -- a LessonPlan without a test
    sample_test          -- a five-question objective Test

Workflow:
    store                -- PersistentStore over db_engine and a dict
    recording_source     -- VideoSource counting start/stop calls
    fake_camera          -- CameraCapture over recording_source
    make_controller      -- factory fixture for WorkflowController

Flask:
    flask_app            -- Flask app on a temp database, CSRF disabled
    anon_flask_client    -- unauthenticated test client
    flask_client         -- test client logged in with the standard passcode
"""

import os
import tempfile

import numpy as np
import pytest

from eduplan.camera import CameraCapture, VideoSource
from eduplan.database import get_engine, init_db
from eduplan.errors import DeviceAccessError
from eduplan.generation_client import GenerationClient
from eduplan.models import GradingResult, LessonPlan, Question, Test
from eduplan.store import PersistentStore
from eduplan.workflow import WorkflowController

# ---------------------------------------------------------------------------
# Core database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db_path():
    """Provide a temporary database file path with cleanup."""
    tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    tmp.close()
    yield tmp.name
    try:
        if os.path.exists(tmp.name):
            os.remove(tmp.name)
    except OSError:
        pass  # Windows may still hold the lock


@pytest.fixture
def db_engine(db_path):
    engine = get_engine(db_path)
    init_db(engine)
    yield engine
    engine.dispose()


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_config(db_path):
    return {
        "llm": {"provider": "mock"},
        "paths": {"database_file": db_path},
        "camera": {"source": "browser", "jpeg_quality": 80},
    }


# ---------------------------------------------------------------------------
# Generation fixtures
# ---------------------------------------------------------------------------


def make_plan(plan_id="plan-1", title="Frações no cotidiano", test=None):
    return LessonPlan(
        id=plan_id,
        title=title,
        subject="Matemática",
        grade="6º Ano - Fundamental II",
        planning_type="Individual",
        content="1. Acolhida.\n2. Exposição dialogada.",
        objectives=["Compreender frações"],
        methodology="Aula expositiva dialogada",
        resources=["Quadro branco"],
        assessment="Atividade em duplas",
        bncc_codes=["EF06MA07"],
        test=test,
    )


def make_test(count=5):
    return Test(
        questions=[
            Question(
                number=i,
                question=f"Questão {i}",
                correct_answer="ABCD"[(i - 1) % 4],
                options=["A1", "B1", "C1", "D1"],
            )
            for i in range(1, count + 1)
        ]
    )


class StubClient(GenerationClient):
    """GenerationClient with scripted results; records every call.

    Set ``fail_with`` to an exception instance to make every call raise it.
    """

    def __init__(self, plan=None, test=None, text="Frações", grading=None, credential=True):
        self.plan = plan or make_plan()
        self.test = test or make_test()
        self.text = text
        self.grading = grading or GradingResult(score="4/5", feedback="Muito bem")
        self.credential = credential
        self.fail_with = None
        self.calls = []
        self.on_call = None

    def _call(self, name, *args):
        self.calls.append((name, args))
        if self.on_call is not None:
            self.on_call(name)
        if self.fail_with is not None:
            raise self.fail_with

    def generate_plan(self, request):
        self._call("generate_plan", request)
        return self.plan

    def extract_text(self, image_b64, mime_type):
        self._call("extract_text", image_b64, mime_type)
        return self.text

    def generate_test(self, plan, kind):
        self._call("generate_test", plan, kind)
        return self.test

    def grade_test(self, image_b64, test):
        self._call("grade_test", image_b64, test)
        return self.grading

    def has_credential(self):
        return self.credential


class RecordingSource(VideoSource):
    """VideoSource that counts start/stop and serves a blank frame."""

    def __init__(self, deny=False, fail_read=False):
        self.deny = deny
        self.fail_read = fail_read
        self.starts = 0
        self.stops = 0

    def start(self):
        self.starts += 1
        if self.deny:
            raise DeviceAccessError("Permission denied")

    def read(self):
        if self.fail_read:
            raise DeviceAccessError("No frame")
        return np.zeros((48, 64, 3), dtype=np.uint8)

    def stop(self):
        self.stops += 1


@pytest.fixture
def build_plan():
    """Factory fixture: ``build_plan(plan_id, title, test)``."""
    return make_plan


@pytest.fixture
def build_test():
    """Factory fixture: ``build_test(count)`` objective questions."""
    return make_test


@pytest.fixture
def sample_plan():
    return make_plan()


@pytest.fixture
def sample_test():
    return make_test()


@pytest.fixture
def stub_client():
    return StubClient()


# ---------------------------------------------------------------------------
# Workflow fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(db_engine):
    return PersistentStore(db_engine, {})


@pytest.fixture
def recording_source():
    return RecordingSource()


@pytest.fixture
def fake_camera(recording_source):
    return CameraCapture(lambda: recording_source)


@pytest.fixture
def make_controller(store, stub_client, fake_camera):
    """Factory fixture: ``create(logged_in=True, **overrides)``.

    Overrides are passed to WorkflowController (client, camera,
    on_credential_request, ...).
    """

    def _create(logged_in=True, **overrides):
        kwargs = {"client": stub_client, "store": store, "camera": fake_camera}
        kwargs.update(overrides)
        controller = WorkflowController(**kwargs)
        if logged_in:
            assert controller.login("2026")
        return controller

    return _create


# ---------------------------------------------------------------------------
# Flask test client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def flask_app(mock_config, tmp_path, monkeypatch):
    """Provide a Flask test app with a temporary database."""
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.delenv("DATABASE_PATH", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("LLM_PROVIDER", raising=False)

    from eduplan.web.app import create_app

    app = create_app(mock_config)
    app.config["TESTING"] = True
    app.config["WTF_CSRF_ENABLED"] = False  # Disable CSRF for non-security tests
    app.config["ENV_PATH"] = str(tmp_path / ".env")

    yield app

    app.config["DB_ENGINE"].dispose()


@pytest.fixture
def anon_flask_client(flask_app):
    with flask_app.test_client() as client:
        yield client


@pytest.fixture
def flask_client(flask_app):
    """Provide a test client logged in through the passcode form."""
    with flask_app.test_client() as client:
        resp = client.post("/login", data={"passcode": "2026"})
        assert resp.status_code == 303
        yield client
