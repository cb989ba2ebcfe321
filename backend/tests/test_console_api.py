import io

import jwt
import pandas as pd


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_token_carries_normalized_roles(client, stock_service):
    response = client.post("/auth/token", data={"username": "admin", "password": "secret"})

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"] == {"username": "admin", "roles": ["ADMIN", "USER"]}
    claims = jwt.decode(body["access_token"], options={"verify_signature": False})
    assert claims["roles"] == ["ADMIN", "USER"]
    assert claims["jti"]
    assert len(stock_service.requests_to("/auth/login")) == 1


def test_bad_credentials(client):
    response = client.post("/auth/token", data={"username": "alice", "password": "nope"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Identifiants invalides"


def test_me(client, user_headers):
    response = client.get("/auth/me", headers=user_headers)

    assert response.json() == {"username": "alice", "roles": ["USER"]}


def test_requests_without_token_are_rejected(client):
    assert client.get("/console/movements").status_code == 401
    assert client.get("/console/movements", headers={"Authorization": "Bearer forged"}).status_code == 401


def test_dataset_listing_depends_on_roles(client, user_headers, admin_headers):
    user_sets = [item["name"] for item in client.get("/console/datasets", headers=user_headers).json()["items"]]
    admin_sets = [item["name"] for item in client.get("/console/datasets", headers=admin_headers).json()["items"]]

    assert "users" not in user_sets
    assert set(admin_sets) == {"movements", "products", "stocks", "users"}


def test_movements_latest_first(client, user_headers):
    response = client.get("/console/movements", params={"sort": "movementDate,desc", "size": 10}, headers=user_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["totalElements"] == 23
    assert body["totalPages"] == 3
    assert body["number"] == 0
    assert len(body["content"]) == 10
    assert body["content"][0]["id"] == 23


def test_movements_filter_search_and_clamp(client, user_headers):
    filtered = client.get("/console/movements", params={"warehouseId": "7"}, headers=user_headers).json()
    searched = client.get("/console/movements", params={"q": "bob", "size": 50}, headers=user_headers).json()
    clamped = client.get("/console/movements", params={"page": 99, "size": 10}, headers=user_headers).json()

    assert filtered["totalElements"] == 4
    assert filtered["totalPages"] == 1
    assert searched["totalElements"] == 11
    assert clamped["number"] == 2
    assert len(clamped["content"]) == 3


def test_bulk_collection_is_cached_per_user(client, stock_service, user_headers):
    client.get("/console/movements", headers=user_headers)
    client.get("/console/movements", params={"page": 1}, headers=user_headers)

    assert len(stock_service.requests_to("/api/movements")) == 1


def test_date_range(client, user_headers):
    body = client.get(
        "/console/movements",
        params={"from": "2024-03-01T00:00:00Z", "to": "2024-03-01T18:00:00Z"},
        headers=user_headers,
    ).json()

    assert [row["id"] for row in body["content"]] == [2, 1]


def test_invalid_queries_are_400(client, user_headers):
    for params in ({"size": 0}, {"page": -1}, {"sort": "movementDate,up"}, {"color": "red"}, {"page": "two"}):
        response = client.get("/console/movements", params=params, headers=user_headers)
        assert response.status_code == 400, params

    response = client.get("/console/stocks", params={"from": "2024-01-01"}, headers=user_headers)
    assert response.status_code == 400


def test_unknown_dataset_is_404(client, user_headers):
    assert client.get("/console/warehouses", headers=user_headers).status_code == 404


def test_users_require_admin(client, user_headers, admin_headers):
    assert client.get("/console/users", headers=user_headers).status_code == 403

    body = client.get("/console/users", params={"enabled": "true"}, headers=admin_headers).json()
    assert [row["username"] for row in body["content"]] == ["alice", "carol"]


def test_server_mode_forwards_query(client, stock_service, user_headers):
    response = client.get(
        "/console/products", params={"q": "café", "size": 2, "sort": "name,asc"}, headers=user_headers
    )

    assert response.status_code == 200
    body = response.json()
    assert body["totalElements"] == 5
    assert body["totalPages"] == 3
    assert len(body["content"]) == 2
    params = stock_service.requests_to("/api/products")[-1].url.params
    assert params["q"] == "café"
    assert params["sort"] == "name,asc"
    assert params["size"] == "2"


def test_upstream_failure_is_502(client, stock_service, user_headers):
    stock_service.failing["/api/movements"] = 500

    response = client.get("/console/movements", headers=user_headers)

    assert response.status_code == 502


def test_upstream_unauthorized_revokes_console_token(client, stock_service, user_headers):
    assert client.get("/console/movements", headers=user_headers).status_code == 200
    stock_service.revoked.add("upstream-alice")

    response = client.get("/console/stocks", headers=user_headers)

    assert response.status_code == 401
    assert client.get("/auth/me", headers=user_headers).status_code == 401


def test_logout_revokes_token(client, user_headers):
    assert client.post("/auth/logout", headers=user_headers).json() == {"status": "logged_out"}
    assert client.get("/auth/me", headers=user_headers).status_code == 401


def test_export_pdf_streams_remote_report(client, stock_service, user_headers):
    response = client.get(
        "/console/movements/export",
        params={"format": "pdf", "warehouseId": "7", "page": 2},
        headers=user_headers,
    )

    assert response.status_code == 200
    assert response.content == b"%PDF-report"
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == 'attachment; filename="stock_movements.pdf"'
    params = stock_service.requests_to("/reports/movements.pdf")[-1].url.params
    assert params["warehouseId"] == "7"
    assert "page" not in params


def test_export_csv_renders_every_matching_row(client, user_headers):
    response = client.get(
        "/console/movements/export", params={"format": "csv", "warehouseId": "7"}, headers=user_headers
    )

    assert response.status_code == 200
    df = pd.read_csv(io.BytesIO(response.content))
    assert len(df) == 4
    assert df.columns[0] == "id"


def test_export_rejects_unavailable_format(client, admin_headers):
    assert client.get("/console/users/export", params={"format": "pdf"}, headers=admin_headers).status_code == 400
    assert client.get("/console/movements/export", params={"format": "docx"}, headers=admin_headers).status_code == 422


def test_dashboard_reports_partial_failures(client, stock_service, user_headers):
    stock_service.failing["/api/dashboard/metrics"] = 503

    body = client.get("/console/dashboard", headers=user_headers).json()

    assert body["metrics"] == {}
    assert len(body["recent_movements"]) == 5
    assert body["recent_movements"][0]["id"] == 23
    assert body["errors"] and body["errors"][0].startswith("metrics")


def test_dashboard(client, user_headers):
    body = client.get("/console/dashboard", headers=user_headers).json()

    assert body["metrics"]["products"] == 5
    assert body["errors"] == []
