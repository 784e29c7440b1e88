"""
app/services package marker.
"""

from app.services.csv_ingestion_service import CSVIngestionError, ParsedCSV, parse_csv_bytes, parse_csv_text
from app.services.master_data_loader import MasterDataLoadError, load_master_data

__all__ = [
    "CSVIngestionError",
    "MasterDataLoadError",
    "ParsedCSV",
    "load_master_data",
    "parse_csv_bytes",
    "parse_csv_text",
]
