import json
import os

from dotenv import load_dotenv
from web3 import Web3

load_dotenv()

DEFAULT_RPC_URL = "http://127.0.0.1:8545"
DEFAULT_CONTRACT_INFO = "contract-info.json"
DEPLOY_HINT = "Run: python -m chain.deploy_certificate (with a local node running)"


class ContractInfoError(Exception):
    """contract-info.json is missing or unusable."""


def get_rpc_url():
    return os.getenv("RPC_URL", DEFAULT_RPC_URL)


def get_web3(rpc_url=None):
    timeout = float(os.getenv("RPC_TIMEOUT", "10"))
    provider = Web3.HTTPProvider(rpc_url or get_rpc_url(), request_kwargs={'timeout': timeout})
    return Web3(provider)


def get_private_key():
    # Without a key the node's unlocked account is used (hardhat / anvil / ganache)
    return os.getenv("PRIVATE_KEY") or None


def get_signer_index():
    return int(os.getenv("SIGNER_INDEX", "0"))


def get_contract_info_path():
    return os.getenv("CONTRACT_INFO_PATH", DEFAULT_CONTRACT_INFO)


def load_contract_info(path=None):
    """
    Read the deployed contract address and ABI.

    The ABI may be stored as a list or as a JSON string (ethers writes
    interface.format('json') as a string).
    """
    path = path or get_contract_info_path()
    if not os.path.exists(path):
        raise ContractInfoError(f"Contract not deployed ({path} not found). {DEPLOY_HINT}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            info = json.load(f)
    except ValueError as e:
        raise ContractInfoError(f"Invalid JSON in {path}: {e}")

    address = info.get("address")
    abi = info.get("abi")
    if not address or not abi:
        raise ContractInfoError(f"{path} must contain 'address' and 'abi'")

    if isinstance(abi, str):
        try:
            abi = json.loads(abi)
        except ValueError as e:
            raise ContractInfoError(f"ABI in {path} is not valid JSON: {e}")

    return {"address": address, "abi": abi}


def save_contract_info(address, abi, path=None):
    path = path or get_contract_info_path()
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"address": address, "abi": abi}, f, indent=2)
    return path
