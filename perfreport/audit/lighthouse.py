# perfreport/audit/lighthouse.py
import asyncio
import json
import logging
from typing import List, Sequence

from ..errors import AuditEngineError
from .findings import MeasurementRun
from .psi import normalize_url

logger = logging.getLogger(__name__)

DEFAULT_CHROME_FLAGS = ("--headless", "--no-sandbox")


class LighthouseCliEngine:
    """Runs the local `lighthouse` binary against a headless Chrome."""

    def __init__(self, binary: str = "lighthouse", chrome_flags: Sequence[str] = DEFAULT_CHROME_FLAGS):
        self.binary = binary
        self.chrome_flags = tuple(chrome_flags)

    def command(self, url: str) -> List[str]:
        return [
            self.binary,
            url,
            "--output=json",
            "--output-path=stdout",
            "--quiet",
            f"--chrome-flags={' '.join(self.chrome_flags)}",
        ]

    async def run(self, url: str) -> MeasurementRun:
        target = normalize_url(url)
        if not target:
            raise AuditEngineError("Empty or invalid URL input")

        logger.info("Launching %s for %s", self.binary, target)
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.command(target),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise AuditEngineError(f"Could not start {self.binary}: {e}") from e

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            proc.kill()
            raise

        if proc.returncode != 0:
            logger.error("Lighthouse exited with %s: %s", proc.returncode, stderr.decode(errors="replace")[:500])
            raise AuditEngineError(f"Lighthouse exited with code {proc.returncode}")

        try:
            lhr = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise AuditEngineError("Lighthouse produced invalid JSON") from e

        if lhr.get("runtimeError"):
            raise AuditEngineError(f"Lighthouse runtime error: {lhr['runtimeError'].get('message')}")
        return MeasurementRun.from_lhr(lhr)
