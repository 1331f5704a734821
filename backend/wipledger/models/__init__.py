from .catalog import Part, Section, Operation, PartRoute
from .wip import (
    WipBalance, WipLabel, WipReceipt, WipTransfer, WipTransferOperation, WipScrap,
    WarehouseItem, WipLaunch, WipLaunchOperation, WipBalanceAdjustment,
)
from .audit import ReceiptAudit, TransferAudit, TransferAuditOperation
from .cleanup import WipBalanceCleanupJob, WipBalanceCleanupStageItem

__all__ = [
    'Part', 'Section', 'Operation', 'PartRoute',
    'WipBalance', 'WipLabel', 'WipReceipt', 'WipTransfer', 'WipTransferOperation', 'WipScrap',
    'WarehouseItem', 'WipLaunch', 'WipLaunchOperation', 'WipBalanceAdjustment',
    'ReceiptAudit', 'TransferAudit', 'TransferAuditOperation',
    'WipBalanceCleanupJob', 'WipBalanceCleanupStageItem',
]
