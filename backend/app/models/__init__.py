from .tenancy import Warehouse
from .customers import Customer
from .crops import Crop, CropRateTier
from .storage import StorageRecord, WithdrawalTransaction
from .payments import Payment
from .documents import InvoiceSequence
from .communications import Notification
from .security import RateLimitEvent

__all__ = [
    'Warehouse', 'Customer',
    'Crop', 'CropRateTier',
    'StorageRecord', 'WithdrawalTransaction',
    'Payment',
    'InvoiceSequence',
    'Notification',
    'RateLimitEvent',
]
