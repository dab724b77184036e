import logging
import re

from .amounts import format_btc

logger = logging.getLogger(__name__)

HEX64 = re.compile(r"^[0-9a-f]{64}$")
UNSIGNED_AMOUNT = re.compile(r"^\d+(\.\d{1,8})?$")
REPORT_LINES = 10


def report_lines(report):
    return [
        report.txid,  # Transaction ID (txid)
        report.miner_input_address,  # Miner's Input Address
        format_btc(report.miner_input_amount),  # Miner's Input Amount (in BTC)
        report.trader_output_address,  # Trader's Output Address
        format_btc(report.trader_output_amount),  # Trader's Output Amount (in BTC)
        report.miner_change_address,  # Miner's Change Address
        format_btc(report.miner_change_amount),  # Miner's Change Amount (in BTC)
        format_btc(report.fee),  # Transaction Fees (in BTC)
        str(report.block_height),  # Block height at which the transaction is confirmed
        report.blockhash,  # Block hash at which the transaction is confirmed
    ]


def validate_lines(lines):
    if len(lines) != REPORT_LINES:
        raise ValueError(f"report has {len(lines)} lines, expected {REPORT_LINES}")
    for i in (0, 9):
        if not HEX64.match(lines[i]):
            raise ValueError(f"line {i + 1} is not 64-char lowercase hex: {lines[i]!r}")
    if not lines[8].isdigit():
        raise ValueError(f"line 9 is not a block height: {lines[8]!r}")
    if not UNSIGNED_AMOUNT.match(lines[7]):
        raise ValueError(f"line 8 is not an unsigned fee: {lines[7]!r}")
    for i, line in enumerate(lines):
        if not line or "\n" in line:
            raise ValueError(f"line {i + 1} is empty or spans lines: {line!r}")


def write_report(report, path):
    """Overwrite ``path`` with the ten report lines."""
    lines = report_lines(report)
    validate_lines(lines)
    with open(path, "w") as f:
        for line in lines:
            f.write(f"{line}\n")
    logger.info("Transaction details written to %s", path)
    return lines
