from waybill_ingestion.mapping.headers import FIELD_ALIASES, HeaderMap

__all__ = ["FIELD_ALIASES", "HeaderMap"]
