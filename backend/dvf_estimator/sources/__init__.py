"""Transaction sources: remote API, bulk geo-dvf files, persisted store."""

from __future__ import annotations

from dvf_estimator.config import Settings
from dvf_estimator.sources.base import TransactionQuery, TransactionSource
from dvf_estimator.sources.cerema_api import CeremaApiSource
from dvf_estimator.sources.database import DatabaseSource
from dvf_estimator.sources.dvf_files import DvfFileSource

__all__ = [
    "CeremaApiSource",
    "DatabaseSource",
    "DvfFileSource",
    "TransactionQuery",
    "TransactionSource",
    "build_transaction_source",
]


def build_transaction_source(settings: Settings) -> TransactionSource:
    """Instantiate the source selected by ``settings.transaction_source``."""
    match settings.transaction_source:
        case "cerema_api":
            return CeremaApiSource(settings.cerema_api_url)
        case "dvf_files":
            return DvfFileSource(
                settings.dvf_data_dir,
                download_url=settings.dvf_download_url,
                download_missing=settings.dvf_download_missing,
            )
        case "database":
            from dvf_estimator.database import async_session

            return DatabaseSource(async_session)
        case other:
            raise ValueError(f"unknown transaction source: {other}")
