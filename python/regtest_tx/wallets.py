import logging

from bitcoinrpc.authproxy import JSONRPCException

from .amounts import format_btc, to_decimal, to_sats
from .rpc import RPC_URL, wallet_session

logger = logging.getLogger(__name__)

# RPC_WALLET_ALREADY_LOADED
WALLET_ALREADY_LOADED = -35


class MempoolMissError(Exception):
    """A freshly sent transaction is not in the node's mempool."""

    def __init__(self, txid, error):
        super().__init__(f"transaction {txid} not found in mempool: {error}")
        self.txid = txid
        self.error = error


def ensure_wallet(node, name, url=RPC_URL):
    """Make sure wallet ``name`` is loaded and return a session bound to it.

    The node's createwallet is not idempotent and loadwallet fails for a
    wallet that is already loaded, so check listwallets first, then try to
    load from disk and only create when loading fails.
    """
    if name in node.listwallets():
        logger.info("%s wallet already loaded", name)
        return wallet_session(name, url)

    try:
        node.loadwallet(name)
        logger.info("%s wallet loaded", name)
    except JSONRPCException as e:
        if e.code == WALLET_ALREADY_LOADED:
            logger.info("%s wallet already loaded", name)
        else:
            logger.info("Could not load %s wallet (%s), creating it", name, e.message)
            node.createwallet(name)
            logger.info("%s wallet created", name)

    return wallet_session(name, url)


def mine_until_spendable(miner, node, address):
    """Mine one block at a time to ``address`` until the miner can spend.

    Coinbase outputs need 100 confirmations before they count towards the
    spendable balance, so a fresh regtest chain takes 101 blocks. A node
    that already has mature rewards takes none.
    """
    blocks_mined = 0
    while to_sats(miner.getbalance()) <= 0:
        node.generatetoaddress(1, address)
        blocks_mined += 1
        logger.debug("Blocks mined: %d", blocks_mined)

    balance = to_sats(miner.getbalance())
    logger.info("Mined %d blocks, spendable balance: %s BTC", blocks_mined, format_btc(balance))
    return blocks_mined


def send_and_confirm(miner, node, to_address, amount_sats, reward_address, confirmations=1):
    """Send ``amount_sats`` to ``to_address``, check the mempool and mine it in."""
    logger.info("Sending %s BTC to %s", format_btc(amount_sats), to_address)
    txid = miner.sendtoaddress(to_address, to_decimal(amount_sats))
    logger.info("Transaction sent with TXID: %s", txid)

    try:
        mempool_entry = node.getmempoolentry(txid)
    except JSONRPCException as e:
        raise MempoolMissError(txid, e.error) from e
    logger.info("Transaction found in mempool: %s", txid)
    logger.debug("Mempool entry: %s", mempool_entry)

    block_hashes = node.generatetoaddress(confirmations, reward_address)
    logger.info("Mined %d block(s) to confirm, first: %s", confirmations, block_hashes[0])
    return txid
