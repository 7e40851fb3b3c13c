from __future__ import annotations

from typing import Dict, Type

from ..registry import AdapterRegistry
from .base import SourceAdapter
from .adapters.airtable import AirtableAdapter
from .adapters.database import DatabaseAdapter
from .adapters.google_sheets import GoogleSheetsAdapter
from .adapters.jotform import JotformAdapter
from .adapters.json_file import JsonFileAdapter
from .adapters.rest_api import RestApiAdapter


ADAPTERS: Dict[str, Type[SourceAdapter]] = {
    "google-sheets": GoogleSheetsAdapter,
    "rest-api": RestApiAdapter,
    "database": DatabaseAdapter,
    "json-file": JsonFileAdapter,
    "airtable": AirtableAdapter,
    "jotform": JotformAdapter,
}


def source_registry(backend: str) -> AdapterRegistry[SourceAdapter]:
    return AdapterRegistry("meeting source", backend, ADAPTERS)
