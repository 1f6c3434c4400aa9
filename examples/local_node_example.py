#!/usr/bin/env python3
"""
Example of relaying a delegated request against a local development node.

Start a node first (for example `anvil`), deploy a contract exposing
`transfer(address,uint256)`, then run:

    RELAYER_PRIVATE_KEY=0x... CONTRACT_ADDRESS=0x... ABI_PATH=Token.json \
        python examples/local_node_example.py
"""
import os
import sys
import uuid
import logging
import argparse

from delegate_relayer import (
    DelegateContext,
    RelayerConfig,
    RequestStatus,
    JsonRequestStore,
)
from delegate_relayer.worker import PassLock, build_reconciler, run_exclusive_pass


def main():
    parser = argparse.ArgumentParser(description="Relay one transfer through a local node")
    parser.add_argument("recipient", help="Address receiving the transfer")
    parser.add_argument("amount", type=int, help="Amount in token base units")
    parser.add_argument("--store", default="./example-requests.json", help="Request store file")
    args = parser.parse_args()

    contract_address = os.environ.get("CONTRACT_ADDRESS")
    if not contract_address:
        print("ERROR: CONTRACT_ADDRESS environment variable is required")
        return 1

    logging.basicConfig(level=logging.INFO)
    config = RelayerConfig.from_mapping({
        **RelayerConfig.from_env().model_dump(exclude_defaults=True),
        "store_path": args.store,
        "contract_abi_path": os.environ.get("ABI_PATH"),
        "required_confirmations": 1,
    })

    # 1. Enqueue and authorize a request
    store = JsonRequestStore(args.store, default_expires_at_seconds=config.default_expires_at_seconds)
    request = store.create(
        str(uuid.uuid4()),
        signer=args.recipient,
        context=DelegateContext(
            contract_address=contract_address,
            function_name="transfer",
            function_args=[args.recipient, args.amount],
        ),
    )
    store.confirm(request.id)
    print(f"Queued request {request.id}")

    # 2. Publish it, then run a second pass to pick up the receipt
    reconciler = build_reconciler(config)
    lock = PassLock(str(config.resolved_lock_path))
    for _ in range(2):
        report = run_exclusive_pass(reconciler, lock)
        print(f"Pass: published={report.published} mined={report.mined} next_nonce={report.next_nonce}")

    final = store.find_one(request.id)
    print(f"Request {final.id} is {final.status.name} (nonce={final.nonce}, tx={final.transaction_hash})")
    return 0 if final.status != RequestStatus.FAILED else 1


if __name__ == "__main__":
    sys.exit(main())
