"""ORM model registry: import all models so Alembic autogenerate discovers them."""

from wastecollect_api.models.report_job import ReportJob

__all__ = [
    "ReportJob",
]
