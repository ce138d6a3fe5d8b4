# perfreport/services/storage.py
import asyncio
import logging
from pathlib import Path
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..errors import StorageError
from ..models import Report

logger = logging.getLogger(__name__)


def report_name(guid: str) -> str:
    return f"report_{guid}.json"


class ReportStorage(Protocol):
    async def save(self, name: str, payload: str) -> None:
        ...


class FileReportStorage:
    """Writes each report as a file under `report_dir`."""

    def __init__(self, report_dir: str):
        self.report_dir = Path(report_dir)

    def _write(self, name: str, payload: str) -> Path:
        self.report_dir.mkdir(parents=True, exist_ok=True)
        path = self.report_dir / name
        path.write_text(payload, encoding="utf-8")
        return path

    async def save(self, name: str, payload: str) -> None:
        try:
            path = await asyncio.to_thread(self._write, name, payload)
        except OSError as e:
            logger.error("Error during writing report %s: %s", name, e)
            raise StorageError(f"Could not write report {name}") from e
        logger.info("Report %s uploaded successfully (%s)", name, path)


class DatabaseReportStorage:
    """Stores reports in the `reports` table; a repeated name overwrites."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _upsert(self, name: str, payload: str) -> None:
        with self.session_factory() as db:
            row = db.execute(select(Report).where(Report.name == name)).scalar_one_or_none()
            if row is None:
                db.add(Report(name=name, payload=payload))
            else:
                row.payload = payload
            db.commit()

    async def save(self, name: str, payload: str) -> None:
        try:
            await asyncio.to_thread(self._upsert, name, payload)
        except SQLAlchemyError as e:
            logger.error("Error during storing report %s: %s", name, e)
            raise StorageError(f"Could not store report {name}") from e
        logger.info("Report %s stored in database", name)
