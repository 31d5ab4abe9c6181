"""Imports every ORM model module so Base.metadata knows all tables."""


def import_all_orm_models() -> None:
    import waybill_batch.models.import_job  # noqa: F401
    import waybill_kernel.models.execution_lease  # noqa: F401
    import waybill_kernel.models.reference  # noqa: F401
    import waybill_kernel.models.waybill  # noqa: F401
    import waybill_kernel.services.sequence_service  # noqa: F401
    import waybill_services.models  # noqa: F401
