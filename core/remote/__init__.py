"""Access to the remote stock service: HTTP client, data sources and exports."""

from .client import RemoteServiceError, StockServiceClient, UnauthorizedError
from .exports import (
    EXPORT_MEDIA_TYPES,
    ExportArtifact,
    ExportClient,
    ExportError,
    UnsupportedExportFormat,
    export_csv,
    render_csv,
)
from .params import spec_to_params
from .sources import (
    ClientSideDataSource,
    DataSource,
    DatasetCache,
    ServerPagedDataSource,
    build_data_source,
    extract_records,
)

__all__ = [
    "ClientSideDataSource",
    "DataSource",
    "DatasetCache",
    "EXPORT_MEDIA_TYPES",
    "ExportArtifact",
    "ExportClient",
    "ExportError",
    "RemoteServiceError",
    "ServerPagedDataSource",
    "StockServiceClient",
    "UnauthorizedError",
    "UnsupportedExportFormat",
    "build_data_source",
    "export_csv",
    "extract_records",
    "render_csv",
    "spec_to_params",
]
