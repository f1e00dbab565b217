"""
Ledger boundary: JSON-RPC client, retry policy, signing and contract calls.
"""
