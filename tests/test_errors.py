import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from docsign.errors import (
    Forbidden,
    InvalidState,
    IOFailure,
    NotFound,
    error_message,
    register_error_handlers,
)


@pytest.fixture()
def client():
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/missing")
    def missing():
        raise NotFound("Document not found")

    @app.get("/forbidden")
    def forbidden():
        raise Forbidden("Only the document reviewer can approve it")

    @app.get("/conflict")
    def conflict():
        raise InvalidState("Cannot approve: document is draft")

    @app.get("/io")
    def io():
        raise IOFailure("Template PDF could not be read")

    @app.get("/plain")
    def plain():
        raise HTTPException(status_code=400, detail="Email is required")

    @app.get("/structured")
    def structured():
        raise HTTPException(status_code=400, detail=[{"field": "email"}])

    @app.get("/items/{item_id}")
    def item(item_id: int):
        return {"id": item_id}

    @app.get("/boom")
    def boom():
        raise RuntimeError("unexpected")

    return TestClient(app, raise_server_exceptions=False)


class TestErrorHandlers:
    @pytest.mark.parametrize(
        "path,status,code",
        [
            ("/missing", 404, "not_found"),
            ("/forbidden", 403, "forbidden"),
            ("/conflict", 409, "invalid_state"),
            ("/io", 500, "io_failure"),
        ],
    )
    def test_domain_errors(self, client, path, status, code):
        resp = client.get(path)
        assert resp.status_code == status
        body = resp.json()
        assert body["code"] == code
        assert body["message"]
        assert body["details"] is None

    def test_plain_http_exception(self, client):
        resp = client.get("/plain")
        assert resp.status_code == 400
        assert resp.json() == {
            "code": "http_400",
            "message": "Email is required",
            "details": None,
        }

    def test_structured_http_exception(self, client):
        resp = client.get("/structured")
        assert resp.status_code == 400
        assert resp.json() == {
            "code": "http_400",
            "message": "Request failed",
            "details": [{"field": "email"}],
        }

    def test_validation_error(self, client):
        resp = client.get("/items/abc")
        assert resp.status_code == 422
        body = resp.json()
        assert body["code"] == "validation_error"
        assert body["details"]

    def test_unhandled_error(self, client):
        resp = client.get("/boom")
        assert resp.status_code == 500
        assert resp.json()["code"] == "internal_error"


class TestErrorMessage:
    def test_message_from_domain_error(self):
        assert error_message(NotFound("Template not found")) == "Template not found"

    def test_message_from_plain_detail(self):
        assert error_message(HTTPException(status_code=400, detail="bad")) == "bad"

    def test_message_from_structured_detail(self):
        exc = HTTPException(status_code=400, detail=[{"loc": "x"}])
        assert error_message(exc) == ""
