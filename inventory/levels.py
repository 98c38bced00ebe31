"""
Stock level classification.

Pure functions over a quantity and a product's minimum stock level. Nothing
here is stored: every read recomputes the classification from current
StoreStock quantities.
"""
from django.db.models import F, Q

OUT_OF_STOCK = 'OUT_OF_STOCK'
LOW_STOCK = 'LOW_STOCK'
IN_STOCK = 'IN_STOCK'


def is_low_stock(quantity: int, min_stock_level: int) -> bool:
    """Quantities at the threshold count as low."""
    return quantity <= min_stock_level


def is_out_of_stock(quantity: int) -> bool:
    return quantity <= 0


def stock_status(quantity: int, min_stock_level: int) -> str:
    if is_out_of_stock(quantity):
        return OUT_OF_STOCK
    if is_low_stock(quantity, min_stock_level):
        return LOW_STOCK
    return IN_STOCK


def low_stock_q(prefix=''):
    """Q matching StoreStock rows at or below their product's threshold.

    ``prefix`` is the lookup path to the StoreStock relation, e.g. ``'stocks__'``
    when filtering from Store.
    """
    return Q(**{f'{prefix}quantity__lte': F(f'{prefix}product__min_stock_level')})
