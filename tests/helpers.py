from __future__ import annotations

from fastapi.testclient import TestClient

TEST_SECRET = "test-secret-key"
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLS = "application/vnd.ms-excel"


def login_headers(client: TestClient, password: str) -> dict:
    r = client.post("/api/v1/login", json={"password": password})
    assert r.status_code == 200, f"Login failed: {r.text}"
    return {"Authorization": f"Bearer {r.json()['data']['token']}"}


def upload(client: TestClient, headers: dict, name: str = "book.xlsx", data: bytes = b"PK\x03\x04data",
           content_type: str = XLSX):
    return client.post(
        "/api/v1/upload-excel",
        headers=headers,
        files={"excelFile": (name, data, content_type)},
    )
