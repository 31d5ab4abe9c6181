from waybill_batch.models.import_job import ImportJobModel

__all__ = ["ImportJobModel"]
