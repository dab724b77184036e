"""Fixed-point BTC amounts.

The node speaks decimal BTC with 8 fractional digits and python-bitcoinrpc
decodes those as ``Decimal``. Everything past the RPC boundary works in
integer satoshis; text goes back out through ``format_btc``.
"""
from decimal import Decimal

COIN = 100_000_000


def to_sats(value):
    """Convert a node amount to satoshis, refusing anything finer than 1 sat."""
    if isinstance(value, bool):
        raise TypeError("amount must be numeric, not bool")
    if isinstance(value, float):
        # repr() gives the shortest string that round-trips, e.g. 0.1 -> '0.1'
        value = repr(value)
    amount = Decimal(value)
    if not amount.is_finite():
        raise ValueError(f"amount is not finite: {value!r}")
    sats = amount * COIN
    if sats != sats.to_integral_value():
        raise ValueError(f"amount has more than 8 fractional digits: {value!r}")
    return int(sats)


def to_decimal(sats):
    return Decimal(sats) / COIN


def format_btc(sats):
    """Render satoshis the way the node does, e.g. 2000000000 -> '20.00000000'."""
    if sats < 0:
        raise ValueError(f"cannot format negative amount: {sats}")
    whole, frac = divmod(sats, COIN)
    return f"{whole}.{frac:08d}"
