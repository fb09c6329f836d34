from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from .command import CommandEnvelope


@dataclass
class DiscoveryReply:
    text: str
    envelope: CommandEnvelope
    address: str
    port: int
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
