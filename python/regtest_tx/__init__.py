"""Drive a regtest node through a Miner -> Trader payment and report on it."""
