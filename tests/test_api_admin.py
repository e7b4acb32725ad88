import pytest
from conftest import register

QUIZ = {"title": "Capitals", "description": "World capitals", "category": "Geography", "difficulty": "easy",
        "time_limit": 10, "show_answers": True, "is_active": True, "tags": [" geo ", "", "maps"]}

SINGLE = {"type": "single", "question": "Capital of France?", "points": 2,
          "options": [{"text": "Paris", "is_correct": True}, {"text": "Lyon"}]}


@pytest.mark.parametrize("method,path", [
    ("get", "/v1/admin/stats"), ("get", "/v1/admin/quizzes"), ("post", "/v1/admin/quizzes"),
    ("get", "/v1/admin/users"), ("put", "/v1/admin/users/x/role"), ("delete", "/v1/admin/users/x"),
    ("delete", "/v1/admin/quizzes/x"), ("put", "/v1/admin/questions/x"), ("get", "/v1/admin/quizzes/x/analytics"),
])
def test_admin_routes_forbidden_for_users(client, user_headers, method, path):
    r = client.request(method, path, headers=user_headers, json={})
    assert r.status_code == 403


def test_admin_routes_require_auth(client):
    assert client.get("/v1/admin/stats").status_code == 401


def test_quiz_and_question_crud(client, admin_headers, user_headers):
    r = client.post("/v1/admin/quizzes", json=QUIZ, headers=admin_headers)
    assert r.status_code == 201
    quiz = r.json()
    assert quiz["tags"] == ["geo", "maps"]
    qid = quiz["id"]

    r = client.post(f"/v1/admin/quizzes/{qid}/questions", json=SINGLE, headers=admin_headers)
    assert r.status_code == 201
    first = r.json()
    assert first["order_index"] == 0 and len(first["options"]) == 2
    multi = {"type": "multiple", "question": "Cities in Italy?", "options": [
        {"text": "Rome", "is_correct": True}, {"text": "Milan", "is_correct": True}, {"text": "Nice"}]}
    second = client.post(f"/v1/admin/quizzes/{qid}/questions", json=multi, headers=admin_headers).json()
    assert second["order_index"] == 1

    detail = client.get(f"/v1/quizzes/{qid}", headers=user_headers).json()
    assert [q["text"] for q in detail["questions"]] == ["Capital of France?", "Cities in Italy?"]

    updated = dict(SINGLE, question="Capital of Spain?", options=[{"text": "Madrid", "is_correct": True}, {"text": "Seville"}])
    r = client.put(f"/v1/admin/questions/{first['id']}", json=updated, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["question"] == "Capital of Spain?"
    assert {o["text"] for o in r.json()["options"]} == {"Madrid", "Seville"}

    r = client.put(f"/v1/admin/quizzes/{qid}", json=dict(QUIZ, is_active=False), headers=admin_headers)
    assert r.json()["is_active"] is False
    assert client.get("/v1/quizzes").json() == []

    rows = client.get("/v1/admin/quizzes", headers=admin_headers).json()
    assert rows[0]["question_count"] == 2 and rows[0]["attempt_count"] == 0

    assert client.delete(f"/v1/admin/questions/{second['id']}", headers=admin_headers).status_code == 204
    assert len(client.get(f"/v1/admin/quizzes/{qid}/questions", headers=admin_headers).json()) == 1
    assert client.delete(f"/v1/admin/quizzes/{qid}", headers=admin_headers).status_code == 204
    assert client.get("/v1/admin/quizzes", headers=admin_headers).json() == []
    assert client.delete(f"/v1/admin/quizzes/{qid}", headers=admin_headers).status_code == 404


@pytest.mark.parametrize("question", [
    {"type": "single", "question": "No key", "options": [{"text": "a"}, {"text": "b"}]},
    {"type": "single", "question": "Two keys", "options": [{"text": "a", "is_correct": True}, {"text": "b", "is_correct": True}]},
    {"type": "truefalse", "question": "Three", "options": [{"text": "T", "is_correct": True}, {"text": "F"}, {"text": "?"}]},
    {"type": "multiple", "question": "One option", "options": [{"text": "a", "is_correct": True}]},
])
def test_invalid_questions_rejected(client, admin_headers, question):
    qid = client.post("/v1/admin/quizzes", json=QUIZ, headers=admin_headers).json()["id"]
    r = client.post(f"/v1/admin/quizzes/{qid}/questions", json=question, headers=admin_headers)
    assert r.status_code == 422
    assert r.json()["error"]["type"] == "validation_error"


def test_user_management(client, admin_headers):
    player = register(client, "someone@example.com")["user"]
    users = client.get("/v1/admin/users", headers=admin_headers).json()
    assert {u["email"] for u in users} == {"root@example.com", "someone@example.com"}

    r = client.put(f"/v1/admin/users/{player['id']}/role", json={"role": "admin"}, headers=admin_headers)
    assert r.status_code == 200 and r.json()["role"] == "admin"
    assert client.put(f"/v1/admin/users/{player['id']}/role", json={"role": "owner"}, headers=admin_headers).status_code == 422

    me = client.get("/v1/auth/me", headers=admin_headers).json()
    assert client.put(f"/v1/admin/users/{me['id']}/role", json={"role": "user"}, headers=admin_headers).status_code == 409
    assert client.delete(f"/v1/admin/users/{me['id']}", headers=admin_headers).status_code == 409

    assert client.delete(f"/v1/admin/users/{player['id']}", headers=admin_headers).status_code == 204
    assert client.delete(f"/v1/admin/users/{player['id']}", headers=admin_headers).status_code == 404


def test_stats_and_analytics(client, admin_headers, user_headers, stored_quiz):
    client.post("/v1/session", json={"quiz_id": "js"}, headers=user_headers)
    client.post("/v1/session/answers", json={"question_id": "q1", "selected_options": ["1"]}, headers=user_headers)
    client.post("/v1/session/complete", headers=user_headers)

    stats = client.get("/v1/admin/stats", headers=admin_headers).json()
    assert stats == {"total_users": 2, "total_quizzes": 1, "total_questions": 3, "total_completions": 1, "average_score": 33}

    r = client.get("/v1/admin/quizzes/js/analytics", headers=admin_headers).json()
    assert r["analytics"]["total_attempts"] == 1 and r["analytics"]["average_score"] == 33
    assert r["completions"][0]["email"] == "player@example.com"


def test_demoted_or_deleted_admin_loses_access_with_old_token(client, admin_headers):
    player = register(client, "deputy@example.com")["user"]
    client.put(f"/v1/admin/users/{player['id']}/role", json={"role": "admin"}, headers=admin_headers)
    login = client.post("/v1/auth/login", json={"email": "deputy@example.com", "password": "secret123"}).json()
    deputy = {"Authorization": f"Bearer {login['access_token']}"}
    assert client.get("/v1/admin/stats", headers=deputy).status_code == 200

    client.put(f"/v1/admin/users/{player['id']}/role", json={"role": "user"}, headers=admin_headers)
    assert client.get("/v1/admin/stats", headers=deputy).status_code == 403

    client.delete(f"/v1/admin/users/{player['id']}", headers=admin_headers)
    assert client.get("/v1/admin/users", headers=deputy).status_code == 401
