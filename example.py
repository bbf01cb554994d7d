import sys
import time

from chain.connect import load_contract_info, ContractInfoError
from chain.verifier import CertificateVerifierApp
from utils.hash_utils import create_certificate, format_certificate


def main():
    print("Starting Certificate Verifier Example...")

    try:
        info = load_contract_info()
    except ContractInfoError as e:
        print(e)
        sys.exit(1)

    verifier = CertificateVerifierApp()
    if not verifier.initialize(info['address'], info['abi']):
        print("Failed to initialize. Make sure the node is running!")
        sys.exit(1)

    contract_info = verifier.get_contract_info()
    if contract_info:
        print("\n=== CONTRACT INFO ===")
        print(f"Contract Owner: {contract_info['contractOwner']}")
        print(f"Your Address: {contract_info['signerAddress']}")
        print(f"Your Balance: {contract_info['signerBalance']} ETH")
        print(f"Network ID: {contract_info['networkId']}")

    certificate = create_certificate(
        "John Doe",
        "Blockchain Development Fundamentals",
        "2024-01-15",
        grade="A+",
        credits=3,
        instructor="Prof. Smith"
    )
    print("\n=== CERTIFICATE CREATED ===")
    print(format_certificate(certificate))

    print("\n=== ISSUING CERTIFICATE ON BLOCKCHAIN ===")
    issued = verifier.issue_certificate(certificate, {
        'institution': "Blockchain Academy",
        'certificateType': "Course Completion",
        'validUntil': "2025-01-15"
    })
    if not issued['success']:
        print(f"Failed to issue certificate: {issued['error']}")
        return

    print(f"Transaction Hash: {issued['transactionHash']}")
    print(f"Block Number: {issued['blockNumber']}")
    print(f"Gas Used: {issued['gasUsed']}")

    time.sleep(2)

    print("\n=== VERIFYING CERTIFICATE ===")
    verified = verifier.verify_certificate(certificate)
    if verified['valid']:
        print("Certificate is VALID")
        print(f"Issue Date: {verified['issueDate']}")
        print(f"Issued by: {verified['issuer']}")
        print(f"Metadata: {verified['metadata']}")
    else:
        print(f"Verification failed: {verified.get('message') or verified.get('error')}")

    print("\n=== TESTING WITH FAKE CERTIFICATE ===")
    fake = create_certificate("Jane Doe", "Blockchain Development Fundamentals", "2024-01-15")
    if verifier.verify_certificate(fake)['valid']:
        print("Something is wrong - fake certificate was validated!")
    else:
        print("Fake certificate was rejected as expected")


if __name__ == "__main__":
    main()
