"""
MTS Minerals Engine - Status Lifecycle
=======================================
Three independent state machines:

    stock_status    in-stock -> withdrawn | resampled
                    resampled -> in-stock
                    withdrawn is terminal

    finance_status  unpaid -> invoiced -> paid
                    unpaid -> paid          (commit of an uninvoiced lot)
                    unpaid | invoiced -> exported
                    paid and exported are terminal

    advance_status  Unpaid -> Paid          (one-way, commit only)

Only lots in {unpaid, invoiced} and advances in {Unpaid} are eligible
for aggregation. The move into "paid" belongs to the payment commit;
status changes requested by a user may not target it.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import FrozenSet, Tuple

from core.errors import TransitionError
from core.primitives.workflow import StateTransition, WorkflowDefinition
from engines.minerals.models import FinanceStatus, MineralLot, StockStatus

logger = logging.getLogger("mts.lifecycle")


# ══════════════════════════════════════════════════════════════
# WORKFLOW DEFINITIONS
# ══════════════════════════════════════════════════════════════

STOCK_STATUS_WORKFLOW = WorkflowDefinition(
    name="stock_status",
    initial_state=StockStatus.IN_STOCK.value,
    terminal_states=frozenset({StockStatus.WITHDRAWN.value}),
    transitions={
        StockStatus.IN_STOCK.value: frozenset({
            StockStatus.WITHDRAWN.value,
            StockStatus.RESAMPLED.value,
        }),
        StockStatus.RESAMPLED.value: frozenset({StockStatus.IN_STOCK.value}),
        StockStatus.WITHDRAWN.value: frozenset(),
    },
)

FINANCE_STATUS_WORKFLOW = WorkflowDefinition(
    name="finance_status",
    initial_state=FinanceStatus.UNPAID.value,
    terminal_states=frozenset({FinanceStatus.PAID.value, FinanceStatus.EXPORTED.value}),
    transitions={
        FinanceStatus.UNPAID.value: frozenset({
            FinanceStatus.INVOICED.value,
            FinanceStatus.PAID.value,
            FinanceStatus.EXPORTED.value,
        }),
        FinanceStatus.INVOICED.value: frozenset({
            FinanceStatus.PAID.value,
            FinanceStatus.EXPORTED.value,
        }),
        FinanceStatus.PAID.value: frozenset(),
        FinanceStatus.EXPORTED.value: frozenset(),
    },
)

ADVANCE_UNPAID = "Unpaid"
ADVANCE_PAID = "Paid"

ADVANCE_STATUS_WORKFLOW = WorkflowDefinition(
    name="advance_status",
    initial_state=ADVANCE_UNPAID,
    terminal_states=frozenset({ADVANCE_PAID}),
    transitions={
        ADVANCE_UNPAID: frozenset({ADVANCE_PAID}),
        ADVANCE_PAID: frozenset(),
    },
)

ELIGIBLE_FINANCE_STATUSES: FrozenSet[FinanceStatus] = frozenset({
    FinanceStatus.UNPAID,
    FinanceStatus.INVOICED,
})

# Settlement inputs of lots in these states are a frozen snapshot.
FROZEN_FINANCE_STATUSES: FrozenSet[FinanceStatus] = frozenset({
    FinanceStatus.PAID,
    FinanceStatus.EXPORTED,
})

COMMIT_ONLY_FINANCE_STATUSES: FrozenSet[FinanceStatus] = frozenset({FinanceStatus.PAID})


# ══════════════════════════════════════════════════════════════
# ELIGIBILITY
# ══════════════════════════════════════════════════════════════

def is_lot_eligible(lot: MineralLot) -> bool:
    return lot.finance_status in ELIGIBLE_FINANCE_STATUSES


def is_lot_frozen(lot: MineralLot) -> bool:
    return lot.finance_status in FROZEN_FINANCE_STATUSES


def is_advance_status_eligible(status: str) -> bool:
    return status == ADVANCE_UNPAID


# ══════════════════════════════════════════════════════════════
# TRANSITIONS
# ══════════════════════════════════════════════════════════════

def change_stock_status(
    lot: MineralLot,
    to_status: StockStatus,
    at: datetime,
    reason: str = "",
) -> Tuple[MineralLot, StateTransition]:
    record = STOCK_STATUS_WORKFLOW.transition(
        lot.stock_status.value, to_status.value, at, reason,
    )
    updated = replace(
        lot,
        stock_status=to_status,
        stock_status_changed_at=at,
        updated_at=at,
    )
    logger.info(
        "Lot %s/%s stock_status %s -> %s",
        lot.category.value, lot.lot_id, record.from_state, record.to_state,
    )
    return updated, record


def change_finance_status(
    lot: MineralLot,
    to_status: FinanceStatus,
    at: datetime,
    reason: str = "",
    *,
    via_commit: bool = False,
) -> Tuple[MineralLot, StateTransition]:
    """Apply a finance transition. Targeting "paid" requires via_commit."""
    if to_status in COMMIT_ONLY_FINANCE_STATUSES and not via_commit:
        raise TransitionError(
            FINANCE_STATUS_WORKFLOW.name, lot.finance_status.value, to_status.value,
        )
    record = FINANCE_STATUS_WORKFLOW.transition(
        lot.finance_status.value, to_status.value, at, reason,
    )
    updated = replace(
        lot,
        finance_status=to_status,
        previous_finance_status=lot.finance_status,
        finance_status_changed_at=at,
        updated_at=at,
    )
    logger.info(
        "Lot %s/%s finance_status %s -> %s",
        lot.category.value, lot.lot_id, record.from_state, record.to_state,
    )
    return updated, record


def pay_advance_status(current: str, at: datetime) -> StateTransition:
    return ADVANCE_STATUS_WORKFLOW.transition(current, ADVANCE_PAID, at, "payment commit")
