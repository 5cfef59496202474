"""
Shopping Module - the trip aggregate and the purchase reconciliation workflow

Trip → Stop → LineItem, where every line item is paired 1:1 with a ledger
entry. Recording a purchase also touches stock, catalog and the scheduler;
editing or deleting one keeps all of those consistent.
"""

from packages.domain.shopping.deletion_service import DeletionService, deletion_service
from packages.domain.shopping.propagation_service import PropagationService, propagation_service
from packages.domain.shopping.purchase_service import PurchaseService, purchase_service
from packages.domain.shopping.store_service import STATE_DEFAULT_TAX_RATES, StoreService, store_service
from packages.domain.shopping.trip_service import TripService, trip_service

__all__ = [
    'DeletionService',
    'deletion_service',
    'PropagationService',
    'propagation_service',
    'PurchaseService',
    'purchase_service',
    'STATE_DEFAULT_TAX_RATES',
    'StoreService',
    'store_service',
    'TripService',
    'trip_service',
]
