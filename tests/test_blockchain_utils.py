import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from utils.blockchain_utils import (
    parse_metadata,
    format_issue_date,
    build_verification_result,
    build_transaction_result,
    failure
)

ISSUER = '0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266'
CERT_HASH = 'ab' * 32


class ResultShapingTestCase(unittest.TestCase):
    def test_parse_metadata(self):
        self.assertEqual(parse_metadata(''), {})
        self.assertEqual(parse_metadata(None), {})
        self.assertEqual(parse_metadata('{"institution":"MIT"}'), {'institution': 'MIT'})
        # Pipe-delimited notes from older registries
        self.assertEqual(parse_metadata('S1|John|2024-01-01'), {'raw': 'S1|John|2024-01-01'})
        self.assertEqual(parse_metadata('[1, 2]'), {'raw': '[1, 2]'})

    def test_format_issue_date(self):
        self.assertEqual(format_issue_date(1705312800), '2024-01-15T10:00:00.000Z')
        self.assertEqual(format_issue_date(0), '1970-01-01T00:00:00.000Z')

    def test_existing_certificate(self):
        record = (True, ISSUER, 1705312800, False, '{"institution":"MIT"}')
        result = build_verification_result(CERT_HASH, record)
        self.assertEqual(result, {
            'valid': True,
            'exists': True,
            'issuer': ISSUER,
            'issueDate': '2024-01-15T10:00:00.000Z',
            'metadata': {'institution': 'MIT'},
            'isRevoked': False,
            'hash': CERT_HASH
        })

    def test_revoked_certificate_is_not_valid(self):
        record = [True, ISSUER, 1705312800, True, '']
        result = build_verification_result(CERT_HASH, record)
        self.assertFalse(result['valid'])
        self.assertTrue(result['exists'])
        self.assertTrue(result['isRevoked'])
        self.assertEqual(result['metadata'], {})

    def test_missing_certificate(self):
        record = (False, '0x' + '0' * 40, 0, False, '')
        result = build_verification_result(CERT_HASH, record)
        self.assertEqual(result, {
            'valid': False,
            'exists': False,
            'message': 'Certificate not found',
            'hash': CERT_HASH
        })

    def test_transaction_result(self):
        receipt = {'blockNumber': 7, 'gasUsed': 51234, 'status': 1}
        result = build_transaction_result(CERT_HASH, bytes.fromhex('cd' * 32), receipt)
        self.assertEqual(result, {
            'success': True,
            'hash': CERT_HASH,
            'transactionHash': '0x' + 'cd' * 32,
            'blockNumber': 7,
            'gasUsed': '51234'
        })

    def test_failure(self):
        self.assertEqual(failure(ValueError('boom')), {'success': False, 'error': 'boom'})


if __name__ == '__main__':
    unittest.main()
