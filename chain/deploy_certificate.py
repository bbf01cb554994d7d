import argparse
import json
import os

from web3 import Web3

from chain.connect import get_web3, get_private_key, get_signer_index, save_contract_info

DEFAULT_ARTIFACT = "artifacts/contracts/CertificateVerifier.sol/CertificateVerifier.json"


def load_artifact(path):
    """Compiled contract artifact (hardhat/foundry JSON with abi + bytecode)."""
    with open(path, "r", encoding="utf-8") as f:
        artifact = json.load(f)
    bytecode = artifact.get("bytecode")
    # foundry nests it as {"object": "0x..."}
    if isinstance(bytecode, dict):
        bytecode = bytecode.get("object")
    if not artifact.get("abi") or not bytecode:
        raise ValueError(f"{path} does not contain abi and bytecode")
    return artifact["abi"], bytecode


def deploy_contract(artifact_path=DEFAULT_ARTIFACT, output_path=None):
    w3 = get_web3()
    abi, bytecode = load_artifact(artifact_path)
    factory = w3.eth.contract(abi=abi, bytecode=bytecode)

    private_key = get_private_key()
    print("Deploying CertificateVerifier contract...")
    if private_key:
        account = w3.eth.account.from_key(private_key)
        txn = factory.constructor().build_transaction({
            'from': account.address,
            'nonce': w3.eth.get_transaction_count(account.address)
        })
        signed = account.sign_transaction(txn)
        tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
    else:
        deployer = w3.eth.accounts[get_signer_index()]
        tx_hash = factory.constructor().transact({'from': deployer})

    print(f"Sending transaction {Web3.to_hex(tx_hash)}...")
    receipt = w3.eth.wait_for_transaction_receipt(tx_hash)
    address = receipt['contractAddress']
    print(f"CertificateVerifier deployed to: {address}")

    path = save_contract_info(address, abi, output_path)
    print(f"Contract info saved to {path}")

    owner = w3.eth.contract(address=address, abi=abi).functions.owner().call()
    print(f"Contract owner: {owner}")
    return address


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Deploy the CertificateVerifier registry")
    parser.add_argument("--artifact", default=os.getenv("CONTRACT_ARTIFACT", DEFAULT_ARTIFACT))
    parser.add_argument("--output", default=None, help="where to write contract-info.json")
    args = parser.parse_args()
    deploy_contract(args.artifact, args.output)
