"""Backend package exposing the FastAPI application of the stock console (``backend.main:app``)."""
