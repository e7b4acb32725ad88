import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BOOTSTRAP_ADMIN_EMAILS"] = '["root@example.com"]'
os.environ["SECRET_KEY"] = "test-secret"

import pytest
from fastapi.testclient import TestClient

from quizhub.core import database
from quizhub.jobs.queue import get_queue
from quizhub.main import create_app
from quizhub.models import orm
from quizhub.models.quiz import Option, Question, Quiz


class InlineQueue:
    """Runs enqueued jobs immediately; records what was queued."""

    def __init__(self, fail: bool = False):
        self.jobs = []
        self.fail = fail

    def enqueue(self, fn, *args, **kwargs):
        if self.fail:
            raise ConnectionError("redis unavailable")
        self.jobs.append((fn, args, kwargs))
        return fn(*args, **kwargs)


def make_quiz(time_limit=None, show_answers=True) -> Quiz:
    return Quiz(
        id="js", title="JavaScript Fundamentals", category="Programming", difficulty="medium",
        time_limit=time_limit, show_answers=show_answers,
        questions=[
            Question(id="q1", quiz_id="js", type="single", text="Declare a variable?", points=10, order=1,
                     options=[Option(id=i, text=f"opt {i}") for i in ("1", "2", "3", "4")],
                     correct_answers=frozenset({"1"}), explanation="var declares variables."),
            Question(id="q2", quiz_id="js", type="multiple", text="Which are data types?", points=15, order=2,
                     options=[Option(id=i, text=f"opt {i}") for i in ("5", "6", "7", "8")],
                     correct_answers=frozenset({"5", "6", "7"})),
            Question(id="q3", quiz_id="js", type="truefalse", text="null is an object?", points=5, order=3,
                     options=[Option(id="t", text="True"), Option(id="f", text="False")],
                     correct_answers=frozenset({"t"})),
        ],
    )


@pytest.fixture
def quiz():
    return make_quiz()


@pytest.fixture(autouse=True)
def tables():
    orm.Base.metadata.create_all(bind=database.engine)
    yield
    orm.Base.metadata.drop_all(bind=database.engine)


@pytest.fixture
def db():
    s = database.SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def queue():
    return InlineQueue()


@pytest.fixture
def app(queue):
    app = create_app()
    app.dependency_overrides[get_queue] = lambda: queue
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def seed_quiz(db, domain: Quiz, is_active=True) -> orm.Quiz:
    row = orm.Quiz(id=domain.id, title=domain.title, category=domain.category, difficulty=domain.difficulty.value,
                   time_limit=domain.time_limit, show_answers=domain.show_answers, is_active=is_active, tags=[])
    for q in domain.questions:
        row.questions.append(orm.Question(
            id=q.id, type=q.type.value, question=q.text, explanation=q.explanation, points=q.points, order_index=q.order,
            options=[orm.QuestionOption(id=o.id, text=o.text, is_correct=o.id in q.correct_answers, position=i)
                     for i, o in enumerate(q.options)],
        ))
    db.add(row); db.commit()
    return row


@pytest.fixture
def stored_quiz(db, quiz):
    return seed_quiz(db, quiz)


def register(client, email, name="Tester", password="secret123"):
    r = client.post("/v1/auth/register", json={"email": email, "name": name, "password": password})
    assert r.status_code == 201, r.text
    return r.json()


@pytest.fixture
def user_headers(client):
    token = register(client, "player@example.com", "Player")["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(client):
    token = register(client, "root@example.com", "Root")["access_token"]
    return {"Authorization": f"Bearer {token}"}
