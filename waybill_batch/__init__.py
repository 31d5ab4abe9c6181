"""
waybill_batch -- asynchronous CSV import jobs.

Provides the durable job record, a FIFO work queue, a single background
worker that drains it one job at a time, and an operator sweep for jobs left
RUNNING by a crashed process.

Architecture:
    waybill_batch/ is a top-level package.  It imports from waybill_kernel;
    the import itself is injected (any object with the orchestrator's
    ``run`` signature), so batch does not import services.

Invariants:
    - Job timestamps come from an injected Clock.
    - Status moves QUEUED -> RUNNING -> SUCCEEDED | FAILED and never back.
    - Exactly one job is processed at a time per worker; items are taken in
      arrival order.
    - Graceful shutdown: stop() lets the in-flight job finish.
"""
