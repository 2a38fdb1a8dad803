# filmcrawl/logging_utils.py
from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict

from rich.console import Console
from rich.markup import escape

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_STAGE_STYLE = {
    "chunk.fresh": "dim",
    "chunk.start": "cyan",
    "chunk.page": "cyan",
    "chunk.upstream_error": "yellow",
    "chunk.done": "green",
}


def _now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%S%z")


def setup_logging(level: int | str = logging.INFO) -> None:
    logging.basicConfig(format=_LOG_FORMAT, level=level)


class HeartbeatLogger:
    """NDJSON heartbeat to file + concise console breadcrumbs."""
    def __init__(self, log_dir: Path, console: Console | None = None, echo: bool = True):
        self.log_dir = Path(log_dir)
        self.file = self.log_dir / "heartbeat.log"
        self.console = console or Console(stderr=True)
        self.echo = echo

    def ping(self, stage: str, **kv: Any) -> None:
        rec: Dict[str, Any] = {"ts": _now_iso(), "stage": stage, **kv}
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            with self.file.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(rec, ensure_ascii=False) + "\n")
        except OSError as e:
            logging.getLogger(__name__).warning("heartbeat write failed: %s", e)
        if not self.echo:
            return
        parts = " ".join(f"{k}={v}" for k, v in kv.items() if v is not None)
        style = _STAGE_STYLE.get(stage, "white")
        self.console.print(f"[{style}][HB] {stage}[/{style}] {escape(parts)}".strip(), markup=True, highlight=False)


class NullHeartbeat:
    def ping(self, stage: str, **kv: Any) -> None:
        return None


def make_heartbeat(data_dir: Path, echo: bool = True) -> HeartbeatLogger:
    return HeartbeatLogger(Path(data_dir) / "logs", echo=echo)
