from chain.connect import load_contract_info, get_web3, get_rpc_url, get_private_key, get_signer_index
from web3 import Web3


def check_connection():
    print("--- DEBUGGING CONNECTION ---")
    try:
        print("1. Loading contract-info.json...")
        info = load_contract_info()
        print(f"   Contract Address: {info['address']}")

        print(f"2. Connecting to provider {get_rpc_url()}...")
        w3 = get_web3()
        print(f"   Connected: {w3.is_connected()}")

        print("3. Getting network info...")
        print(f"   Chain ID: {w3.eth.chain_id}")

        print("4. Resolving signer...")
        private_key = get_private_key()
        if private_key:
            signer = w3.eth.account.from_key(private_key).address
            print("   Using PRIVATE_KEY account")
        else:
            accounts = w3.eth.accounts
            print(f"   Found {len(accounts)} node accounts")
            signer = accounts[get_signer_index()]
        print(f"   Signer address: {signer}")

        print("5. Getting balance...")
        balance = w3.eth.get_balance(signer)
        print(f"   Balance: {w3.from_wei(balance, 'ether')} ETH")

        print("6. Connecting to contract...")
        contract = w3.eth.contract(address=Web3.to_checksum_address(info['address']), abi=info['abi'])

        print("7. Calling owner()...")
        print(f"   Contract owner: {contract.functions.owner().call()}")

        print("8. Checking if signer is an authorized issuer...")
        print(f"   Is authorized issuer: {contract.functions.authorizedIssuers(signer).call()}")

        print("ALL CHECKS PASSED")
    except Exception as e:
        print(f"Check failed: {e}")
        print("Troubleshooting:")
        print(f"1. Make sure a node is running at {get_rpc_url()}")
        print("2. Make sure the contract is deployed: python -m chain.deploy_certificate")
    print("--- END DEBUG ---")


if __name__ == "__main__":
    check_connection()
