import json
import threading

from web3 import Web3

from chain.connect import get_web3, get_rpc_url, get_private_key, get_signer_index
from utils.hash_utils import generate_hash
from utils.blockchain_utils import (
    build_verification_result,
    build_transaction_result,
    failure
)

DISCONNECTED = 'disconnected'
CONNECTED = 'connected'
CONTRACT_BOUND = 'contract_bound'

# Gas limit = estimate * 120 / 100
GAS_BUFFER_PERCENT = 120
RECEIPT_TIMEOUT = 120


class ContractNotInitialized(Exception):
    def __init__(self):
        super().__init__('Contract not initialized')


class TransactionReverted(Exception):
    pass


class CertificateVerifierApp:
    """
    Client for the CertificateVerifier registry contract.

    Lifecycle: disconnected -> connected (provider + signer) -> contract_bound.
    A failed initialize() drops back to disconnected.
    """

    def __init__(self, rpc_url=None, private_key=None, signer_index=None):
        self.rpc_url = rpc_url or get_rpc_url()
        self.private_key = private_key if private_key is not None else get_private_key()
        self.signer_index = signer_index if signer_index is not None else get_signer_index()
        self.w3 = None
        self.account = None
        self.signer_address = None
        self.contract = None
        # One instance serves every request thread; nonce -> sign -> send must not interleave
        self.send_lock = threading.Lock()

    @property
    def state(self):
        if self.w3 is None or self.signer_address is None:
            return DISCONNECTED
        if self.contract is None:
            return CONNECTED
        return CONTRACT_BOUND

    def reset(self):
        self.w3 = None
        self.account = None
        self.signer_address = None
        self.contract = None

    def connect(self):
        """Open the provider and resolve the signing account."""
        print("Initializing blockchain connection...")
        self.w3 = get_web3(self.rpc_url)
        print(f"Connected to provider {self.rpc_url} (chain id {self.w3.eth.chain_id})")

        if self.private_key:
            self.account = self.w3.eth.account.from_key(self.private_key)
            self.signer_address = self.account.address
        else:
            accounts = self.w3.eth.accounts
            print(f"Found {len(accounts)} accounts")
            if not accounts:
                raise RuntimeError('No accounts found. Make sure the local node is running.')
            if self.signer_index >= len(accounts):
                raise RuntimeError(f'Signer index {self.signer_index} out of range ({len(accounts)} accounts)')
            self.signer_address = accounts[self.signer_index]
        print(f"Using signer: {self.signer_address}")

    def bind_contract(self, contract_address, contract_abi):
        if self.w3 is None:
            raise RuntimeError('Provider not connected')
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=contract_abi
        )
        # Probe a view function so a wrong address/ABI fails here, not on first request
        owner = self.contract.functions.owner().call()
        print(f"Contract bound at {contract_address}, owner: {owner}")

    def initialize(self, contract_address, contract_abi):
        try:
            self.connect()
            self.bind_contract(contract_address, contract_abi)
            print("Blockchain initialization successful")
            return True
        except Exception as e:
            print(f"Blockchain initialization error: {e}")
            self.reset()
            return False

    def _require_contract(self):
        if self.contract is None:
            raise ContractNotInitialized()

    def _estimate_gas_limit(self, contract_fn):
        try:
            estimate = contract_fn.estimate_gas({'from': self.signer_address})
        except Exception as e:
            print(f"Gas estimation unavailable ({e}); sending without manual gas limit")
            return None
        print(f"Estimated gas: {estimate}")
        return estimate * GAS_BUFFER_PERCENT // 100

    def _send(self, contract_fn, gas_limit=None):
        tx_params = {'from': self.signer_address}
        if gas_limit:
            tx_params['gas'] = gas_limit

        with self.send_lock:
            if self.account is not None:
                tx_params['nonce'] = self.w3.eth.get_transaction_count(self.signer_address, 'pending')
                txn = contract_fn.build_transaction(tx_params)
                signed = self.account.sign_transaction(txn)
                tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
            else:
                tx_hash = contract_fn.transact(tx_params)

        print(f"Transaction sent: {Web3.to_hex(tx_hash)}")
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=RECEIPT_TIMEOUT)
        if receipt.get('status') == 0:
            raise TransactionReverted(f"Transaction {Web3.to_hex(tx_hash)} reverted")
        return tx_hash, receipt

    def issue_certificate(self, certificate_data, metadata=None):
        return self.issue_hash(generate_hash(certificate_data), metadata)

    def issue_hash(self, cert_hash, metadata=None):
        try:
            self._require_contract()
            metadata_string = json.dumps(metadata or {}, separators=(',', ':'), ensure_ascii=False)

            print(f"Issuing certificate, hash: {cert_hash}")
            contract_fn = self.contract.functions.issueCertificate(cert_hash, metadata_string)
            tx_hash, receipt = self._send(contract_fn, self._estimate_gas_limit(contract_fn))

            print(f"Certificate issued! Block: {receipt['blockNumber']}")
            return build_transaction_result(cert_hash, tx_hash, receipt)
        except Exception as e:
            print(f"Error issuing certificate: {e}")
            return failure(e)

    def verify_certificate(self, certificate_data):
        return self.verify_hash(generate_hash(certificate_data))

    def verify_hash(self, cert_hash):
        try:
            self._require_contract()
            print(f"Verifying certificate with hash: {cert_hash}")
            record = self.contract.functions.verifyCertificate(cert_hash).call()
            result = build_verification_result(cert_hash, record)
            print("Certificate found" if result['exists'] else "Certificate not found on blockchain")
            return result
        except Exception as e:
            print(f"Error verifying certificate: {e}")
            return {'valid': False, 'error': str(e), 'hash': cert_hash}

    def certificate_exists(self, cert_hash):
        self._require_contract()
        return bool(self.contract.functions.certificateExists(cert_hash).call())

    def revoke_certificate(self, certificate_data):
        return self.revoke_hash(generate_hash(certificate_data))

    def revoke_hash(self, cert_hash):
        try:
            self._require_contract()
            print(f"Revoking certificate with hash: {cert_hash}")
            tx_hash, receipt = self._send(self.contract.functions.revokeCertificate(cert_hash))
            print(f"Certificate revoked! Block: {receipt['blockNumber']}")
            result = build_transaction_result(cert_hash, tx_hash, receipt)
            del result['gasUsed']
            return result
        except Exception as e:
            print(f"Error revoking certificate: {e}")
            return failure(e)

    def is_authorized_issuer(self, address=None):
        self._require_contract()
        address = Web3.to_checksum_address(address or self.signer_address)
        return bool(self.contract.functions.authorizedIssuers(address).call())

    def get_contract_info(self):
        try:
            self._require_contract()
            owner = self.contract.functions.owner().call()
            balance = self.w3.eth.get_balance(self.signer_address)
            return {
                'contractOwner': owner,
                'signerAddress': self.signer_address,
                'signerBalance': str(self.w3.from_wei(balance, 'ether')),
                'networkId': str(self.w3.eth.chain_id)
            }
        except Exception as e:
            print(f"Error getting contract info: {e}")
            return None
