import logging
import os
import sys

from regtest_tx.amounts import COIN, format_btc
from regtest_tx.reconstruct import reconstruct
from regtest_tx.report import write_report
from regtest_tx.rpc import node_session
from regtest_tx.wallets import ensure_wallet, mine_until_spendable, send_and_confirm

logger = logging.getLogger("regtest_tx")

# out.txt lives in the project root, one level above this script
OUT_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "out.txt")

SEND_AMOUNT_SATS = 20 * COIN
CONFIRMATIONS = 1
MINING_LABEL = "Mining Reward"
TRADER_LABEL = "Received"


def run(out_path=OUT_PATH):
    # General client for non-wallet-specific commands
    client = node_session()

    blockchain_info = client.getblockchaininfo()
    logger.info("Connected to %s chain at height %s", blockchain_info["chain"], blockchain_info["blocks"])

    # Create/Load the wallets, named 'Miner' and 'Trader'
    miner_client = ensure_wallet(client, "Miner")
    trader_client = ensure_wallet(client, "Trader")

    # Mine to the Miner until the coinbase reward has matured
    mining_address = miner_client.getnewaddress(MINING_LABEL)
    logger.info("Miner mining address: %s", mining_address)
    mine_until_spendable(miner_client, client, mining_address)

    trader_address = trader_client.getnewaddress(TRADER_LABEL)
    logger.info("Trader receiving address: %s", trader_address)

    # Send 20 BTC from Miner to Trader, check the mempool, mine 1 block
    txid = send_and_confirm(miner_client, client, trader_address, SEND_AMOUNT_SATS,
                            mining_address, confirmations=CONFIRMATIONS)

    report = reconstruct(txid, miner_client, client, trader_address)
    write_report(report, out_path)
    return report


def print_summary(report):
    print("\n=== TRANSACTION SUMMARY ===")
    print(f"Transaction ID: {report.txid}")
    print(f"Miner Input: {report.miner_input_address} ({format_btc(report.miner_input_amount)} BTC)")
    print(f"Trader Output: {report.trader_output_address} ({format_btc(report.trader_output_amount)} BTC)")
    print(f"Miner Change: {report.miner_change_address} ({format_btc(report.miner_change_amount)} BTC)")
    print(f"Transaction Fee: {format_btc(report.fee)} BTC")
    print(f"Confirmed in block {report.block_height}: {report.blockhash}")


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        report = run(OUT_PATH)
    except Exception as e:
        logger.exception("Error occurred: %s", e)
        return 1

    print_summary(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
