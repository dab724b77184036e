import logging
from urllib.parse import quote

from bitcoinrpc.authproxy import AuthServiceProxy

logger = logging.getLogger(__name__)

# Node access params
RPC_HOST = "127.0.0.1"
RPC_PORT = 18443
RPC_USER = "alice"
RPC_PASSWORD = "password"
RPC_URL = f"http://{RPC_USER}:{RPC_PASSWORD}@{RPC_HOST}:{RPC_PORT}"
RPC_TIMEOUT = 30


def node_session(url=RPC_URL):
    """Client for non-wallet-specific commands."""
    logger.debug("Opening node session")
    return AuthServiceProxy(url, timeout=RPC_TIMEOUT)


def wallet_url(name, url=RPC_URL):
    return f"{url}/wallet/{quote(name, safe='')}"


def wallet_session(name, url=RPC_URL):
    """Client bound to a single loaded wallet."""
    logger.debug("Opening wallet session for %r", name)
    return AuthServiceProxy(wallet_url(name, url), timeout=RPC_TIMEOUT)
