"""
Pneuma - On-chain interaction layer for kettle.

Provides the JSON-RPC ledger client, artifact/ABI handling, transaction
construction (plain and confidential compute requests) and revert decoding.

Uses httpx + eth-account + eth-abi instead of the heavyweight web3.py.
"""
