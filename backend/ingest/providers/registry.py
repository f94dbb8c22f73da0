"""
Data source selection.
The source is chosen once from configuration; there is no runtime fallback
from the real API to mock data.
"""
from __future__ import annotations

from typing import Callable

from shared.config import Settings, get_settings
from shared.models.enums import DataSourceKind
from shared.utils.logging import get_logger

from ingest.providers.base import BaseDataSource
from ingest.providers.football_data import FootballDataSource
from ingest.providers.mock import MockDataSource

logger = get_logger(__name__)

DATA_SOURCES: dict[DataSourceKind, Callable[[Settings], BaseDataSource]] = {
    DataSourceKind.FOOTBALL_DATA: lambda s: FootballDataSource(settings=s),
    DataSourceKind.MOCK: lambda s: MockDataSource(settings=s),
}


def build_data_source(settings: Settings | None = None) -> BaseDataSource:
    """Instantiate the configured data source (not yet started)."""
    settings = settings or get_settings()
    source = DATA_SOURCES[settings.data_source](settings)
    logger.info(
        "data_source_selected",
        source=source.name,
        api_key=settings.football_data_key_hint or None,
    )
    return source
