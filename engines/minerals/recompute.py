"""
MTS Minerals Engine - Cancel-and-Replace Recompute
===================================================
Input changes arrive faster than they need to be settled. Each change
submits a recompute; a newer submission for the same lot supersedes
any pending older one. Only the newest ticket per lot may publish.

Single-threaded and cooperative: nothing runs until drain().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from engines.minerals.models import EffectiveFees, LotKey, MineralLot, lot_key
from engines.minerals.settlement import Settlement, settle

logger = logging.getLogger("mts.settlement")


@dataclass(frozen=True)
class RecomputeTicket:
    key: LotKey
    sequence: int


class SettlementRecomputer:

    def __init__(self, on_publish: Optional[Callable[[LotKey, Settlement], None]] = None):
        self._on_publish = on_publish
        self._sequence = 0
        self._latest: Dict[LotKey, int] = {}
        self._pending: Dict[LotKey, Tuple[RecomputeTicket, MineralLot, EffectiveFees]] = {}
        self._displayed: Dict[LotKey, Settlement] = {}

    def submit(self, lot: MineralLot, fees: EffectiveFees) -> RecomputeTicket:
        key = lot_key(lot)
        self._sequence += 1
        ticket = RecomputeTicket(key=key, sequence=self._sequence)
        if key in self._pending:
            logger.debug("Recompute for %s superseded by #%d", key[1], ticket.sequence)
        self._latest[key] = ticket.sequence
        self._pending[key] = (ticket, lot, fees)
        return ticket

    def cancel(self, key: LotKey) -> None:
        self._pending.pop(key, None)
        # Invalidate any in-flight ticket as well.
        self._sequence += 1
        self._latest[key] = self._sequence

    def is_current(self, ticket: RecomputeTicket) -> bool:
        return self._latest.get(ticket.key) == ticket.sequence

    def publish(self, ticket: RecomputeTicket, result: Settlement) -> bool:
        """Publish a result; refused (False) when a newer ticket exists."""
        if not self.is_current(ticket):
            return False
        self._displayed[ticket.key] = result
        if self._on_publish is not None:
            self._on_publish(ticket.key, result)
        return True

    def drain(self) -> Dict[LotKey, Settlement]:
        """Settle the newest submission per lot and publish it."""
        pending, self._pending = self._pending, {}
        published = {}
        for key in sorted(pending, key=lambda k: (k[0].value, k[1])):
            ticket, lot, fees = pending[key]
            result = settle(lot, fees)
            if self.publish(ticket, result):
                published[key] = result
        return published

    def displayed(self, key: LotKey) -> Optional[Settlement]:
        return self._displayed.get(key)

    @property
    def pending_count(self) -> int:
        return len(self._pending)
