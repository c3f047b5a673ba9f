"""
Run-scoped state shared by the staging and commit steps of one run
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from schemas.records import TargetRecord


@dataclass
class RunState:
    """
    Everything one run accumulates between extraction and commit.

    Created at run start and dropped at run end; never persisted and never
    handed to another run.
    """

    job_name: str
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    staged_locations: List[str] = field(default_factory=list)
    max_timestamp: Optional[datetime] = None
    chunks_staged: int = 0
    records_staged: int = 0

    def next_step_id(self) -> int:
        """1-based sequence number of the chunk about to be staged."""
        return self.chunks_staged + 1

    def observe(self, records: Iterable[TargetRecord]) -> None:
        """Raise max_timestamp to the newest non-null change timestamp in ``records``."""
        for record in records:
            ts = record.change_timestamp
            if ts is None:
                continue
            if self.max_timestamp is None or ts > self.max_timestamp:
                self.max_timestamp = ts

    def record_staged(self, location: str, records: List[TargetRecord]) -> None:
        self.staged_locations.append(location)
        self.observe(records)
        self.chunks_staged += 1
        self.records_staged += len(records)

    def elapsed_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.started_at).total_seconds()
