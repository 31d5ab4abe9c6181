from waybill_batch.services.job_service import ImportJobService
from waybill_batch.services.pipeline import ImportPipeline
from waybill_batch.services.queue import ImportJobQueue
from waybill_batch.services.worker import ImportJobWorker

__all__ = [
    "ImportJobQueue",
    "ImportJobService",
    "ImportJobWorker",
    "ImportPipeline",
]
