"""Daily report persistence."""

from sqlalchemy import insert

from models.report import DailyReport
from repositories.schema import daily_reports
from repositories.sql_repo import SqlRepository


class ReportRepository(SqlRepository):
    """Append-only store of generated reports."""

    def save(self, report: DailyReport) -> int:
        return self._insert(insert(daily_reports).values(**report.model_dump()))
