from .stations import Station, DocumentSequence
from .coupons import Coupon, COUPON_STATUSES
from .payments import Payment, PAYMENT_TYPES, PAYMENT_METHODS
from .bonds import Bond

__all__ = [
    'Station', 'DocumentSequence',
    'Coupon', 'COUPON_STATUSES',
    'Payment', 'PAYMENT_TYPES', 'PAYMENT_METHODS',
    'Bond',
]
