import asyncio
import json

import httpx
import pytest

from conftest import auth_headers
from library_ledger.exceptions import SuggestionServiceError
from library_ledger.models import IssuedBook
from library_ledger.routes import issues as issues_module
from library_ledger.services.suggestion_service import SuggestionService

SERVICE_URL = "http://suggestions.test/suggest"


def service_with(handler, **kwargs):
    return SuggestionService(url=SERVICE_URL, transport=httpx.MockTransport(handler), **kwargs)


def suggest(service, title="1984", student="Alice Wonderland"):
    async def run():
        try:
            return await service.suggest_books(title, student)
        finally:
            await service.close()
    return asyncio.run(run())


def test_returns_suggested_titles():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"suggestedBooks": ["Animal Farm", "Brave New World"]})

    assert suggest(service_with(handler)) == ["Animal Farm", "Brave New World"]
    assert seen["body"] == {"issuedBookTitle": "1984", "studentName": "Alice Wonderland"}


def test_api_key_is_sent_as_bearer_token():
    def handler(request):
        assert request.headers["Authorization"] == "Bearer secret"
        return httpx.Response(200, json={"suggestedBooks": []})

    assert suggest(service_with(handler, api_key="secret")) == []


def test_timeout_is_reported():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(SuggestionServiceError, match="timed out"):
        suggest(service_with(handler, timeout=0.5))


def test_server_error_is_reported():
    with pytest.raises(SuggestionServiceError, match="request failed"):
        suggest(service_with(lambda request: httpx.Response(503)))


def test_unexpected_payload_is_reported():
    with pytest.raises(SuggestionServiceError, match="unexpected payload"):
        suggest(service_with(lambda request: httpx.Response(200, json={"books": "Animal Farm"})))


def test_invalid_json_is_reported():
    with pytest.raises(SuggestionServiceError, match="invalid JSON"):
        suggest(service_with(lambda request: httpx.Response(200, text="not json")))


def test_unconfigured_service_is_disabled():
    service = SuggestionService(url="")
    assert not service.enabled
    with pytest.raises(SuggestionServiceError):
        suggest(service)


def test_direct_issue_includes_suggestions(client, monkeypatch, alice, orwell, librarian):
    service = service_with(lambda request: httpx.Response(200, json={"suggestedBooks": ["Animal Farm"]}))
    monkeypatch.setattr(issues_module, "suggestion_service", service)

    response = client.post("/api/library/issues", headers=auth_headers(librarian),
                           json={"student": "Alice Wonderland", "book": orwell.isbn})
    assert response.status_code == 201
    body = response.json()
    assert body["suggestedBooks"] == ["Animal Farm"]
    assert body["notice"] is None
    assert body["issuedBook"]["book"]["availableCopies"] == 4


def test_failed_suggestions_keep_the_issuance(client, db, monkeypatch, alice, orwell, librarian):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    monkeypatch.setattr(issues_module, "suggestion_service", service_with(handler))

    response = client.post("/api/library/issues", headers=auth_headers(librarian),
                           json={"student": "Alice Wonderland", "book": orwell.isbn})
    assert response.status_code == 201
    body = response.json()
    assert body["suggestedBooks"] == []
    assert "suggestions are unavailable" in body["notice"]

    db.refresh(orwell)
    assert orwell.available_copies == 4
    assert db.query(IssuedBook).filter(IssuedBook.student_id == alice.student_id).count() == 1
