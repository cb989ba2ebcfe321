import io

import httpx
import pandas as pd
import pytest

from core.datasets import MOVEMENTS, USERS
from core.remote import (
    ExportArtifact,
    ExportClient,
    ExportError,
    StockServiceClient,
    UnauthorizedError,
    UnsupportedExportFormat,
    export_csv,
    render_csv,
)
from tests.sample_data import make_movement_rows


def _client(handler):
    return StockServiceClient("http://stock.test", token_provider=lambda: "tok", transport=httpx.MockTransport(handler))


def test_fetch_builds_report_url_without_paging():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, content=b"%PDF-1.7", headers={"content-type": "application/pdf; charset=binary"})

    spec = MOVEMENTS.make_spec(search="café", filters={"warehouseId": "7"}, date_from="2024-03-01", page=3)
    with _client(handler) as client:
        artifact = ExportClient(client).fetch(MOVEMENTS, "PDF", spec)

    assert seen["path"] == "/reports/movements.pdf"
    assert seen["params"] == {"q": "café", "warehouseId": "7", "from": "2024-03-01T00:00:00"}
    assert seen["auth"] == "Bearer tok"
    assert artifact == ExportArtifact("stock_movements.pdf", b"%PDF-1.7", "application/pdf")


def test_fetch_falls_back_to_known_media_type():
    with _client(lambda request: httpx.Response(200, content=b"PK")) as client:
        artifact = ExportClient(client).fetch(MOVEMENTS, "xlsx")

    assert artifact.filename == "stock_movements.xlsx"
    assert artifact.media_type.endswith("spreadsheetml.sheet")


def test_non_success_status_raises_export_error():
    with _client(lambda request: httpx.Response(500, text="report failed")) as client:
        with pytest.raises(ExportError) as excinfo:
            ExportClient(client).fetch(MOVEMENTS, "pdf")

    assert excinfo.value.status_code == 500


def test_unauthorized_is_not_swallowed():
    with _client(lambda request: httpx.Response(401)) as client:
        with pytest.raises(UnauthorizedError):
            ExportClient(client).fetch(MOVEMENTS, "xlsx")


def test_unsupported_format_is_rejected_before_any_request():
    def handler(request):  # pragma: no cover - must not be called
        raise AssertionError("no request expected")

    with _client(handler) as client:
        with pytest.raises(UnsupportedExportFormat):
            ExportClient(client).fetch(USERS, "pdf")


def test_download_saves_artifact(tmp_path):
    with _client(lambda request: httpx.Response(200, content=b"%PDF")) as client:
        target = ExportClient(client).download(MOVEMENTS, "pdf", tmp_path / "exports")

    assert target == tmp_path / "exports" / "stock_movements.pdf"
    assert target.read_bytes() == b"%PDF"


def test_render_csv_has_one_column_per_field():
    rows = make_movement_rows(3)

    df = pd.read_csv(io.BytesIO(render_csv(rows, MOVEMENTS)))

    assert list(df.columns) == list(MOVEMENTS.schema.field_names)
    assert df["id"].tolist() == [1, 2, 3]
    assert df.loc[0, "productName"] == "Eau gazeuse 1L"


def test_export_csv_artifact():
    artifact = export_csv([], MOVEMENTS)

    assert artifact.filename == "stock_movements.csv"
    assert artifact.media_type == "text/csv"
    assert artifact.content.decode("utf-8").startswith("id,movementDate")
