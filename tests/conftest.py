"""Pytest configuration and a scripted regtest node for the tests."""

import hashlib
from decimal import Decimal

import pytest
from bitcoinrpc.authproxy import JSONRPCException

from regtest_tx.amounts import COIN, format_btc, to_sats

BLOCK_REWARD = 50 * COIN
SEND_FEE = 2820
COINBASE_MATURITY = 100


def _hash(*parts):
    return hashlib.sha256(":".join(str(p) for p in parts).encode()).hexdigest()


def _rpc_error(code, message):
    return JSONRPCException({"code": code, "message": message})


def _vout(n, address, sats):
    return {"value": Decimal(format_btc(sats)), "n": n,
            "scriptPubKey": {"address": address, "type": "witness_v0_keyhash"}}


class FakeChain:
    """Just enough of bitcoind's regtest behaviour for one send-and-report run."""

    def __init__(self, wallets_on_disk=(), loaded=()):
        self.wallets_on_disk = set(wallets_on_disk) | set(loaded)
        self.loaded = list(loaded)
        self.height = 0
        self.block_heights = {_hash("block", 0): 0}
        self.txs = {}
        self.tx_block = {}
        self.mempool = set()
        self.utxos = []
        self.address_owner = {}
        self.wallet_fees = {}
        self.calls = []
        self._address_counter = 0

    # node-level

    def listwallets(self):
        return list(self.loaded)

    def loadwallet(self, name):
        if name in self.loaded:
            raise _rpc_error(-35, f"Wallet \"{name}\" is already loaded.")
        if name not in self.wallets_on_disk:
            raise _rpc_error(-18, f"Wallet file verification failed. Failed to load database path '{name}'. Path does not exist.")
        self.loaded.append(name)
        return {"name": name}

    def createwallet(self, name):
        if name in self.wallets_on_disk:
            raise _rpc_error(-4, f"Wallet file verification failed. Failed to create database path '{name}'. Database already exists.")
        self.wallets_on_disk.add(name)
        self.loaded.append(name)
        return {"name": name}

    def getblockchaininfo(self):
        return {"chain": "regtest", "blocks": self.height}

    def generatetoaddress(self, nblocks, address):
        hashes = []
        for _ in range(nblocks):
            self.height += 1
            blockhash = _hash("block", self.height)
            self.block_heights[blockhash] = self.height

            coinbase = _hash("coinbase", self.height)
            self.txs[coinbase] = {
                "txid": coinbase,
                "vin": [{"coinbase": "51", "sequence": 4294967295}],
                "vout": [_vout(0, address, BLOCK_REWARD)],
            }
            self.tx_block[coinbase] = blockhash
            self.utxos.append({"txid": coinbase, "vout": 0, "address": address,
                               "sats": BLOCK_REWARD, "coinbase": True})

            for txid in self.mempool:
                self.tx_block[txid] = blockhash
            self.mempool.clear()
            hashes.append(blockhash)
        return hashes

    def getmempoolentry(self, txid):
        if txid not in self.mempool:
            raise _rpc_error(-5, "Transaction not in mempool")
        return {"vsize": 141, "fees": {"base": Decimal(format_btc(SEND_FEE))}}

    def getblockheader(self, blockhash, verbose=True):
        if blockhash not in self.block_heights:
            raise _rpc_error(-5, "Block not found")
        return {"hash": blockhash, "height": self.block_heights[blockhash]}

    def getrawtransaction(self, txid, verbose=False, blockhash=None):
        if txid not in self.txs:
            raise _rpc_error(-5, "No such mempool or blockchain transaction.")
        return self.txs[txid]

    # wallet-level

    def getnewaddress(self, wallet, label=""):
        self._address_counter += 1
        address = f"bcrt1q{wallet.lower()}{self._address_counter:04d}"
        self.address_owner[address] = wallet
        return address

    def _depth(self, utxo):
        blockhash = self.tx_block.get(utxo["txid"])
        if blockhash is None:
            return 0
        return self.height - self.block_heights[blockhash] + 1

    def _spendable(self, wallet):
        for utxo in self.utxos:
            if self.address_owner.get(utxo["address"]) != wallet:
                continue
            depth = self._depth(utxo)
            if utxo["coinbase"] and depth < COINBASE_MATURITY + 1:
                continue
            if depth == 0:
                continue
            yield utxo

    def getbalance(self, wallet):
        return Decimal(format_btc(sum(u["sats"] for u in self._spendable(wallet))))

    def sendtoaddress(self, wallet, address, amount):
        sats = to_sats(amount)
        for utxo in self._spendable(wallet):
            if utxo["sats"] >= sats + SEND_FEE:
                break
        else:
            raise _rpc_error(-6, "Insufficient funds")

        change_address = self.getnewaddress(wallet)
        change = utxo["sats"] - sats - SEND_FEE
        txid = _hash("send", len(self.txs))
        self.txs[txid] = {
            "txid": txid,
            "vin": [{"txid": utxo["txid"], "vout": utxo["vout"], "sequence": 4294967293}],
            "vout": [_vout(0, address, sats), _vout(1, change_address, change)],
        }
        self.utxos.remove(utxo)
        self.utxos.append({"txid": txid, "vout": 0, "address": address, "sats": sats, "coinbase": False})
        self.utxos.append({"txid": txid, "vout": 1, "address": change_address, "sats": change, "coinbase": False})
        self.mempool.add(txid)
        self.wallet_fees[txid] = -SEND_FEE
        return txid

    def gettransaction(self, wallet, txid, verbose=False):
        if txid not in self.wallet_fees:
            raise _rpc_error(-5, "Invalid or non-wallet transaction id")
        record = {"txid": txid, "fee": Decimal(-SEND_FEE) / COIN,
                  "confirmations": 0}
        blockhash = self.tx_block.get(txid)
        if blockhash is not None:
            record["blockhash"] = blockhash
            record["blockheight"] = self.block_heights[blockhash]
            record["confirmations"] = self.height - self.block_heights[blockhash] + 1
        return record


WALLET_METHODS = {"getnewaddress", "getbalance", "sendtoaddress", "gettransaction"}


class FakeSession:
    """Stands in for an AuthServiceProxy bound to the node or to one wallet."""

    def __init__(self, chain, wallet=None):
        self.chain = chain
        self.wallet = wallet

    def __getattr__(self, method):
        target = getattr(self.chain, method)

        def call(*args):
            self.chain.calls.append((self.wallet, method) + args)
            if method in WALLET_METHODS:
                if self.wallet is None:
                    raise _rpc_error(-19, "Wallet file not specified (must request wallet RPC through /wallet/<filename> uri-path).")
                if self.wallet not in self.chain.loaded:
                    raise _rpc_error(-18, "Requested wallet does not exist or is not loaded")
                return target(self.wallet, *args)
            return target(*args)
        return call


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def fake_rpc(monkeypatch):
    """Route every session the code opens to a FakeChain; returns a factory."""

    def install(chain):
        import main
        from regtest_tx import wallets

        monkeypatch.setattr(main, "node_session", lambda *a, **kw: FakeSession(chain))
        monkeypatch.setattr(wallets, "wallet_session", lambda name, url=None: FakeSession(chain, name))
        return chain
    return install
