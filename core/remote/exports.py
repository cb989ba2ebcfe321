"""Export artifacts: remote PDF/XLSX reports and local CSV rendering."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import pandas as pd

from core.datasets import DatasetDefinition
from core.query import QuerySpec, Row

from .client import RemoteServiceError, StockServiceClient, UnauthorizedError
from .params import spec_to_params

logger = logging.getLogger(__name__)

EXPORT_MEDIA_TYPES = {
    "pdf": "application/pdf",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv",
}


class ExportError(Exception):
    """Raised when an export cannot be produced or downloaded."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class UnsupportedExportFormat(ExportError):
    """The dataset has no export in the requested format."""


@dataclass(frozen=True)
class ExportArtifact:
    filename: str
    content: bytes
    media_type: str

    def save(self, directory: str | Path) -> Path:
        target_dir = Path(directory)
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / self.filename
        target.write_bytes(self.content)
        logger.info("Export enregistré: %s (%d octets)", target, len(self.content))
        return target


def _export_filename(dataset: DatasetDefinition, fmt: str) -> str:
    return f"{dataset.export_basename or dataset.name}.{fmt}"


class ExportClient:
    """Download the reports generated by the stock service."""

    def __init__(self, client: StockServiceClient):
        self._client = client

    def fetch(self, dataset: DatasetDefinition, fmt: str, spec: QuerySpec | None = None) -> ExportArtifact:
        fmt = (fmt or "").strip().lower()
        if fmt not in dataset.export_formats:
            raise UnsupportedExportFormat(f"Format '{fmt}' non disponible pour {dataset.name}")

        path = dataset.report_path_template.format(fmt=fmt)
        params = spec_to_params(spec, paged=False) if spec is not None else None
        try:
            content, content_type = self._client.get_bytes(path, params=params)
        except UnauthorizedError:
            raise
        except RemoteServiceError as exc:
            logger.warning("Export %s échoué: %s", path, exc)
            raise ExportError(f"Téléchargement impossible: {exc}", status_code=exc.status_code) from exc

        media_type = (content_type or "").split(";")[0].strip() or EXPORT_MEDIA_TYPES[fmt]
        return ExportArtifact(filename=_export_filename(dataset, fmt), content=content, media_type=media_type)

    def download(
        self,
        dataset: DatasetDefinition,
        fmt: str,
        directory: str | Path,
        spec: QuerySpec | None = None,
    ) -> Path:
        return self.fetch(dataset, fmt, spec).save(directory)


def render_csv(rows: Iterable[Row], dataset: DatasetDefinition) -> bytes:
    """Render projected rows as CSV, one column per schema field (``id`` first)."""

    columns = list(dataset.schema.field_names)
    df = pd.DataFrame([row.as_dict() for row in rows], columns=columns)
    return df.to_csv(index=False).encode("utf-8")


def export_csv(rows: Iterable[Row], dataset: DatasetDefinition) -> ExportArtifact:
    return ExportArtifact(
        filename=_export_filename(dataset, "csv"),
        content=render_csv(rows, dataset),
        media_type=EXPORT_MEDIA_TYPES["csv"],
    )


__all__ = [
    "EXPORT_MEDIA_TYPES",
    "ExportArtifact",
    "ExportClient",
    "ExportError",
    "UnsupportedExportFormat",
    "export_csv",
    "render_csv",
]
