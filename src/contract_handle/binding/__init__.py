"""
Binding - contract bindings for ContractHandle.

Provides a JSON-RPC binding (httpx + eth-abi + eth-account, no web3.py),
ABI tables resolved at bind time, and the Submission event emitter that
drives deploy/send completion.
"""
