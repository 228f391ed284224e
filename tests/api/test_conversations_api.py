"""API tests for sign-in, saved conversations, uploads and email sharing."""
import os
import tempfile

import pytest

import main
from services.documents import MAX_FILE_SIZE, TRUNCATION_MARKER

PROBLEM = "I can't decide whether to go back to school for a master's degree"
DIALOGUE = [
    {"question": "What would the degree give you?", "answer": "Credibility."},
    {"question": "Who told you that?", "answer": "Mostly myself."},
]


def save(client, headers, **body):
    body.setdefault("problem", PROBLEM)
    return client.post("/api/conversations", json=body, headers=headers)


@pytest.fixture
def saved_thread(client, auth_headers):
    response = save(client, auth_headers, questions=DIALOGUE, summary="You doubt your own standing.")
    assert response.status_code == 200
    return response.json()["threadId"]


class TestAuth:
    """Tests for identity-provider sessions."""

    def test_bearer_session(self, client, auth_headers):
        response = client.get("/api/auth/user", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == "user-1"
        assert data["email"] == "ada@example.com"
        assert data["firstName"] == "Ada"
        assert data["lastName"] == "Lovelace"

    def test_cookie_session(self, client, session_token):
        client.cookies.set("session", session_token(sub="user-9", email="kay@example.com"))

        response = client.get("/api/auth/user")

        assert response.status_code == 200
        assert response.json()["id"] == "user-9"

    def test_profile_is_refreshed(self, client, session_token):
        client.get("/api/auth/user", headers={"Authorization": f"Bearer {session_token(email='old@example.com')}"})

        response = client.get(
            "/api/auth/user", headers={"Authorization": f"Bearer {session_token(email='new@example.com')}"}
        )

        assert response.json()["email"] == "new@example.com"

    def test_missing_session(self, client):
        response = client.get("/api/auth/user")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_invalid_and_expired_sessions(self, client, session_token):
        bad = client.get("/api/auth/user", headers={"Authorization": "Bearer not-a-token"})
        expired = client.get(
            "/api/auth/user", headers={"Authorization": f"Bearer {session_token(expires_in=-60)}"}
        )

        assert bad.status_code == 401
        assert expired.status_code == 401

    def test_conversations_require_a_session(self, client):
        assert client.get("/api/conversations").status_code == 401
        assert save(client, {}).status_code == 401


class TestSaveConversation:
    """Tests for POST /api/conversations."""

    def test_create_then_update_same_thread(self, client, auth_headers, saved_thread):
        response = save(
            client, auth_headers,
            threadId=saved_thread,
            questions=DIALOGUE,
            summary="You doubt your own standing.",
            actionPlan="1. GOAL CLARITY: decide by spring.",
        )

        assert response.status_code == 200
        assert response.json() == {"threadId": saved_thread}
        threads = client.get("/api/conversations", headers=auth_headers).json()
        assert len(threads) == 1
        assert threads[0]["actionPlan"] == "1. GOAL CLARITY: decide by spring."
        assert threads[0]["status"] == "completed"

    def test_problem_required(self, client, auth_headers):
        response = client.post("/api/conversations", json={"questions": DIALOGUE}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json() == {"error": "Problem is required"}

    def test_unknown_thread(self, client, auth_headers):
        response = save(client, auth_headers, threadId="does-not-exist")

        assert response.status_code == 404

    def test_other_users_thread_is_not_found(self, client, other_user_headers, saved_thread):
        response = save(client, other_user_headers, threadId=saved_thread, questions=DIALOGUE)

        assert response.status_code == 404

    def test_rewriting_history_is_a_conflict(self, client, auth_headers, saved_thread):
        response = save(client, auth_headers, threadId=saved_thread, questions=DIALOGUE[1:])

        assert response.status_code == 409
        assert "error" in response.json()


class TestReadConversations:
    """Tests for listing, reading and exporting threads."""

    def test_list_is_scoped_to_user(self, client, auth_headers, other_user_headers, saved_thread):
        save(client, other_user_headers, problem="Someone else's dilemma about moving abroad")

        threads = client.get("/api/conversations", headers=auth_headers).json()

        assert [t["id"] for t in threads] == [saved_thread]
        assert threads[0]["title"] == PROBLEM[:50].rstrip() + "..."
        assert threads[0]["questions"] == DIALOGUE
        assert threads[0]["coachingMessages"] == []

    def test_search(self, client, auth_headers, saved_thread):
        save(client, auth_headers, problem="Should I adopt a second dog for company?")

        found = client.get("/api/conversations", params={"q": "STANDING"}, headers=auth_headers).json()

        assert [t["id"] for t in found] == [saved_thread]

    def test_detail_includes_messages(self, client, auth_headers, saved_thread):
        response = client.get(f"/api/conversations/{saved_thread}", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["problem"] == PROBLEM
        assert [m["type"] for m in data["messages"]] == ["question", "answer", "question", "answer", "summary"]
        assert data["messages"][0]["threadId"] == saved_thread
        assert data["messages"][3]["metadata"] == {"index": 1}

    def test_detail_of_other_users_thread(self, client, other_user_headers, saved_thread):
        response = client.get(f"/api/conversations/{saved_thread}", headers=other_user_headers)

        assert response.status_code == 404
        assert response.json() == {"error": "Conversation not found"}

    def test_export(self, client, auth_headers, saved_thread):
        response = client.get(f"/api/conversations/{saved_thread}/export", headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert 'filename="socratic-session-' in response.headers["content-disposition"]
        assert response.text.startswith("SOCRATIC THINKING SESSION\n")
        assert "Q2: Who told you that?\nA2: Mostly myself.\n\n" in response.text
        assert "=== INSIGHTS & SUMMARY ===\nYou doubt your own standing." in response.text


class TestModifyConversations:
    """Tests for PATCH and DELETE."""

    def test_rename_and_archive(self, client, auth_headers, saved_thread):
        response = client.patch(
            f"/api/conversations/{saved_thread}",
            json={"title": "Master's degree", "status": "archived"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["title"] == "Master's degree"
        assert response.json()["status"] == "archived"

    def test_invalid_update(self, client, auth_headers, saved_thread):
        response = client.patch(f"/api/conversations/{saved_thread}", json={"title": ""}, headers=auth_headers)

        assert response.status_code == 400

    def test_delete(self, client, auth_headers, saved_thread):
        response = client.delete(f"/api/conversations/{saved_thread}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"message": "Conversation deleted successfully"}
        assert client.get(f"/api/conversations/{saved_thread}", headers=auth_headers).status_code == 404
        assert client.delete(f"/api/conversations/{saved_thread}", headers=auth_headers).status_code == 404

    def test_delete_other_users_thread(self, client, other_user_headers, saved_thread):
        response = client.delete(f"/api/conversations/{saved_thread}", headers=other_user_headers)

        assert response.status_code == 404


class TestUploadDocument:
    """Tests for POST /api/upload-document."""

    def test_text_upload(self, client):
        response = client.post(
            "/api/upload-document",
            files={"file": ("notes.txt", b"My landlord won't fix the heating.", "text/plain")},
        )

        assert response.status_code == 200
        assert response.json() == {
            "content": "My landlord won't fix the heating.",
            "originalLength": 34,
            "truncated": False,
        }

    def test_long_upload_is_truncated(self, client):
        response = client.post(
            "/api/upload-document",
            files={"file": ("notes.txt", b"z" * 6000, "text/plain")},
        )

        data = response.json()
        assert data["truncated"] is True
        assert data["originalLength"] == 6000
        assert data["content"].endswith(TRUNCATION_MARKER)
        assert len(data["content"]) == 5000 + len(TRUNCATION_MARKER)

    def test_unsupported_type(self, client):
        response = client.post(
            "/api/upload-document",
            files={"file": ("photo.png", b"\x89PNG", "image/png")},
        )

        assert response.status_code == 400
        assert "Unsupported file type" in response.json()["error"]

    def test_oversized_upload(self, client):
        response = client.post(
            "/api/upload-document",
            files={"file": ("big.txt", b"a" * (MAX_FILE_SIZE + 1), "text/plain")},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "File size exceeds maximum allowed size of 5MB"}

    def test_temp_file_is_removed(self, client, monkeypatch):
        created = []
        original_mkstemp = tempfile.mkstemp

        def recording_mkstemp(*args, **kwargs):
            fd, path = original_mkstemp(*args, **kwargs)
            created.append(path)
            return fd, path

        monkeypatch.setattr(main.tempfile, "mkstemp", recording_mkstemp)

        client.post("/api/upload-document", files={"file": ("a.txt", b"Some text here", "text/plain")})
        client.post("/api/upload-document", files={"file": ("b.txt", b"   ", "text/plain")})

        assert len(created) == 2
        assert not any(os.path.exists(path) for path in created)

    def test_allowed_types(self, client):
        response = client.get("/api/upload-document/allowed-types")

        assert response.status_code == 200
        assert response.json()["extensions"] == [".txt", ".pdf", ".doc", ".docx"]
        assert response.json()["maxSizeBytes"] == MAX_FILE_SIZE


class TestEmail:
    """Tests for POST /api/email/send."""

    def test_prepare_anonymous(self, client):
        response = client.post("/api/email/send", json={"subject": " My plan ", "content": "Step one.\n"})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "emailContent": "Subject: My plan\n\nStep one.\n",
            "recipient": None,
            "subject": "My plan",
        }

    def test_recipient_is_signed_in_user(self, client, auth_headers):
        response = client.post(
            "/api/email/send", json={"subject": "My plan", "content": "Step one."}, headers=auth_headers
        )

        assert response.json()["recipient"] == "ada@example.com"

    def test_subject_and_content_required(self, client):
        response = client.post("/api/email/send", json={"subject": "My plan"})

        assert response.status_code == 400
        assert response.json() == {"error": "Subject and content are required"}
