"""Side effects of a completed sale: stock and register totals"""

from orderflow.fulfillment.inventory import InventoryLedger, InventoryDeductionResult
from orderflow.fulfillment.registers import CashRegisterLedger

__all__ = ["InventoryLedger", "InventoryDeductionResult", "CashRegisterLedger"]
