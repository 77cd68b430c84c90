from .tenancy import Tenant
from .inventory import InventoryItem, LedgerEntry, ITEM_CATEGORIES, LEDGER_TYPES
from .production import (
    Equipment,
    Batch,
    Lot,
    LotBatch,
    TankAssignment,
    BatchTimelineEvent,
    BATCH_STATUSES,
    TERMINAL_BATCH_STATUSES,
    LOT_PHASES,
    LOT_STATUSES,
    ASSIGNMENT_STATUSES,
    EQUIPMENT_KINDS,
    TIMELINE_EVENT_TYPES,
)

__all__ = [
    'Tenant',
    'InventoryItem', 'LedgerEntry', 'ITEM_CATEGORIES', 'LEDGER_TYPES',
    'Equipment', 'Batch', 'Lot', 'LotBatch', 'TankAssignment', 'BatchTimelineEvent',
    'BATCH_STATUSES', 'TERMINAL_BATCH_STATUSES', 'LOT_PHASES', 'LOT_STATUSES',
    'ASSIGNMENT_STATUSES', 'EQUIPMENT_KINDS', 'TIMELINE_EVENT_TYPES',
]
