"""
Ablage der Report-Artefakte im Dateisystem (write-once).

Pfad: {REPORT_STORAGE_DIR}/{tenant_id}/{report_id}.{format}
Dateien werden exklusiv angelegt und danach schreibgeschützt.
"""
import logging
import os
import uuid
from pathlib import Path

from worktime.core.config import settings
from worktime.core.exceptions import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class ReportStorage:
    def __init__(self, base_dir: str | Path | None = None):
        self.base_dir = Path(base_dir or settings.REPORT_STORAGE_DIR).resolve()

    def _resolve(self, storage_path: str) -> Path:
        path = (self.base_dir / storage_path).resolve()
        if self.base_dir not in path.parents:
            raise NotFoundError(f"Report artifact {storage_path} not found")
        return path

    def save(self, tenant_id: uuid.UUID, report_id: uuid.UUID, extension: str, payload: bytes) -> str:
        """Schreibt das Artefakt und gibt den relativen Ablagepfad zurück."""
        storage_path = f"{tenant_id}/{report_id}.{extension}"
        path = self._resolve(storage_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(path, "xb") as fh:
                fh.write(payload)
        except FileExistsError:
            raise ConflictError(f"Report artifact {storage_path} already exists")
        os.chmod(path, 0o444)

        logger.info("Stored report artifact %s (%d bytes)", storage_path, len(payload))
        return storage_path

    def read(self, storage_path: str) -> bytes:
        path = self._resolve(storage_path)
        if not path.is_file():
            raise NotFoundError(f"Report artifact {storage_path} not found")
        return path.read_bytes()

    def discard(self, storage_path: str) -> None:
        """Nur für Artefakte, deren Report-Datensatz nicht gespeichert werden konnte."""
        path = self._resolve(storage_path)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        logger.warning("Discarded orphaned report artifact %s", storage_path)
