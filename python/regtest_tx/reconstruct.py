"""Rebuild an attributed view of a confirmed Miner -> Trader payment.

The wallet record gives the including block and the (signed) fee, the
decoded transaction gives inputs and outputs, the transaction behind input 0
gives the funding address and amount, and the block header gives the height.
The payment is expected to spend into exactly one trader output and one
change output; anything else is a ShapeError.
"""
import logging
from collections import namedtuple

from .amounts import to_sats

logger = logging.getLogger(__name__)

BECH32_PREFIXES = ("bc1", "tb1", "bcrt1")

TxReport = namedtuple("TxReport", [
    "txid",
    "miner_input_address",
    "miner_input_amount",
    "trader_output_address",
    "trader_output_amount",
    "miner_change_address",
    "miner_change_amount",
    "fee",
    "block_height",
    "blockhash",
])


class ShapeError(Exception):
    """The transaction does not have the single-payment-plus-change shape."""


def canonical_address(address):
    address = address.strip()
    # bech32 is case-insensitive and the node prints it in lowercase
    if address.lower().startswith(BECH32_PREFIXES):
        return address.lower()
    return address


def output_address(vout):
    """Address paid by a decoded output, or None for a non-standard script."""
    script = vout.get("scriptPubKey", {})
    if "address" in script:
        return canonical_address(script["address"])
    # nodes before v22 report a list
    addresses = script.get("addresses") or []
    if len(addresses) == 1:
        return canonical_address(addresses[0])
    return None


def funding_input(miner, decoded):
    """Address and amount (sats) of the output spent by input 0."""
    vin = decoded.get("vin") or []
    if not vin:
        raise ShapeError(f"transaction {decoded.get('txid')} has no inputs")
    first = vin[0]
    if "txid" not in first or "vout" not in first:
        raise ShapeError("input 0 does not reference a previous output")

    prev_tx = miner.getrawtransaction(first["txid"], True)
    prev_vouts = prev_tx.get("vout") or []
    n = first["vout"]
    if not 0 <= n < len(prev_vouts):
        raise ShapeError(f"input 0 spends {first['txid']}:{n}, which does not exist")
    prevout = prev_vouts[n]

    address = output_address(prevout)
    if address is None:
        raise ShapeError(f"prevout {first['txid']}:{n} has no address")
    return address, to_sats(prevout["value"])


def classify_outputs(decoded, trader_address):
    """Split outputs into (payment, change), each an (address, sats) pair."""
    trader_address = canonical_address(trader_address)
    payment = None
    change = None

    for vout in decoded.get("vout") or []:
        address = output_address(vout)
        if address is None:
            raise ShapeError(f"output {vout.get('n')} has no address")
        entry = (address, to_sats(vout["value"]))

        if address == trader_address:
            if payment is not None:
                raise ShapeError(f"more than one output pays {trader_address}")
            payment = entry
        else:
            if change is not None:
                raise ShapeError("more than one change output")
            change = entry

    if payment is None:
        raise ShapeError(f"no output pays {trader_address}")
    if change is None:
        raise ShapeError("no change output")
    return payment, change


def reconstruct(txid, miner, node, trader_address):
    # Wallet view: including block and fee
    tx = miner.gettransaction(txid, True)
    blockhash = tx.get("blockhash")
    if not blockhash:
        raise ShapeError(f"transaction {txid} is not in a block")
    if "fee" not in tx:
        raise ShapeError(f"wallet reports no fee for {txid}")
    # Outgoing payments carry a negative fee
    fee = abs(to_sats(tx["fee"]))

    # Passing the block hash lets this work without -txindex
    decoded = miner.getrawtransaction(txid, True, blockhash)

    input_address, input_amount = funding_input(miner, decoded)
    (trader_out_address, trader_amount), (change_address, change_amount) = \
        classify_outputs(decoded, trader_address)

    if len(decoded["vin"]) == 1:
        if input_amount != trader_amount + change_amount + fee:
            raise ShapeError(
                f"input {input_amount} != payment {trader_amount} + change {change_amount} + fee {fee}"
            )
    else:
        logger.warning("Transaction %s has %d inputs, only input 0 is reported",
                       txid, len(decoded["vin"]))

    header = node.getblockheader(blockhash, True)

    return TxReport(
        txid=txid,
        miner_input_address=input_address,
        miner_input_amount=input_amount,
        trader_output_address=trader_out_address,
        trader_output_amount=trader_amount,
        miner_change_address=change_address,
        miner_change_amount=change_amount,
        fee=fee,
        block_height=header["height"],
        blockhash=blockhash,
    )
