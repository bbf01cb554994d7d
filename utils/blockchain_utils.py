"""
Helpers that shape raw contract results into API responses.
The registry contract returns (exists, issuer, timestamp, isRevoked, metadata)
from verifyCertificate; everything here is pure so it can be tested without a node.
"""

import json
from datetime import datetime, timezone

from web3 import Web3


def parse_metadata(raw):
    """
    Decode the metadata string stored alongside a certificate hash.

    Args:
        raw: Metadata string as stored on chain (usually JSON)

    Returns:
        dict. Empty metadata gives {}, non-JSON metadata is kept under 'raw'.
    """
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return {'raw': raw}
    if not isinstance(parsed, dict):
        return {'raw': raw}
    return parsed


def format_issue_date(timestamp):
    """Chain timestamp (seconds) to ISO-8601 UTC, e.g. 2024-01-15T10:00:00.000Z"""
    issued = datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
    return issued.strftime('%Y-%m-%dT%H:%M:%S.') + f"{issued.microsecond // 1000:03d}Z"


def build_verification_result(cert_hash, record):
    """
    Map a verifyCertificate tuple into a verification result.

    Args:
        cert_hash: Hex hash that was looked up
        record: (exists, issuer, timestamp, isRevoked, metadata)

    Returns:
        dict with 'valid' always present
    """
    exists, issuer, timestamp, is_revoked, metadata = record

    if not exists:
        return {
            'valid': False,
            'exists': False,
            'message': 'Certificate not found',
            'hash': cert_hash
        }

    return {
        'valid': not is_revoked,
        'exists': True,
        'issuer': issuer,
        'issueDate': format_issue_date(timestamp),
        'metadata': parse_metadata(metadata),
        'isRevoked': bool(is_revoked),
        'hash': cert_hash
    }


def build_transaction_result(cert_hash, tx_hash, receipt):
    return {
        'success': True,
        'hash': cert_hash,
        'transactionHash': Web3.to_hex(tx_hash),
        'blockNumber': int(receipt['blockNumber']),
        'gasUsed': str(receipt['gasUsed'])
    }


def failure(error):
    return {'success': False, 'error': str(error)}
