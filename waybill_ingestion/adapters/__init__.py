from waybill_ingestion.adapters.base import SourceRow
from waybill_ingestion.adapters.csv_adapter import CsvSourceAdapter

__all__ = ["CsvSourceAdapter", "SourceRow"]
