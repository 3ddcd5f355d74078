"""Opt-in archiving of SOAP requests and responses.

Each call is written under the archive root as

    YYYY/MM/DD/HH-MM-SS_mmm-request.xml
    YYYY/MM/DD/HH-MM-SS_mmm-response.xml

using the local time the call started. Calls started in the same
millisecond (parallel workers) get a ``_N`` suffix on the stem, e.g.
``HH-MM-SS_mmm_1-request.xml``, so no archive overwrites another. Content is
the redacted text the client hands to observers.

Usage:
    client.register_observer(RequestArchiver("./archives"))
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Set, Union

from campaign.lib.client import ClientObserver, SoapCall

logger = logging.getLogger(__name__)

__all__ = ["RequestArchiver", "archive_stamp"]


def archive_stamp(moment: datetime) -> str:
    """Relative archive path stem for a timestamp, e.g. ``2023/01/15/14-30-45_123``."""
    local = moment.astimezone() if moment.tzinfo else moment
    return (
        f"{local:%Y/%m/%d/%H-%M-%S}_{local.microsecond // 1000:03d}"
    )


class RequestArchiver(ClientObserver):
    """Client observer writing every request/response pair to disk.

    Write failures are logged and never interrupt the call being archived.
    Safe to share between threads.
    """

    def __init__(self, root: Union[str, Path] = "archives") -> None:
        self.root = Path(root)
        self.files_written = 0
        self._lock = threading.Lock()
        self._taken: Set[str] = set()
        self._stems: Dict[int, str] = {}

    def on_call(self, call: SoapCall) -> None:
        self._save(call, "request", call.request)

    def on_success(self, call: SoapCall) -> None:
        self._save(call, "response", call.response)
        self._release(call)

    def on_failure(self, call: SoapCall, error: Exception) -> None:
        self._save(call, "response", call.response)
        self._release(call)

    def path_for(self, call: SoapCall, kind: str) -> Path:
        return self.root / f"{self._stem(call)}-{kind}.xml"

    def _stem(self, call: SoapCall) -> str:
        with self._lock:
            stem = self._stems.get(id(call))
            if stem is not None:
                return stem
            base = archive_stamp(call.started_at)
            stem, n = base, 0
            while stem in self._taken or (self.root / f"{stem}-request.xml").exists():
                n += 1
                stem = f"{base}_{n}"
            self._taken.add(stem)
            self._stems[id(call)] = stem
            return stem

    def _release(self, call: SoapCall) -> None:
        with self._lock:
            self._stems.pop(id(call), None)

    def _save(self, call: SoapCall, kind: str, content: Optional[str]) -> None:
        if content is None:
            return
        path = self.path_for(call, kind)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            logger.warning("Could not archive %s %s to %s: %s", call.action, kind, path, e)
            return
        with self._lock:
            self.files_written += 1
        logger.debug("Archived %s %s to %s", call.action, kind, path)
