import io
import os
import sys
import tempfile
import unittest

# Add parent directory to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from werkzeug.datastructures import FileStorage

from utils.hash_utils import (
    generate_hash,
    get_file_hash,
    generate_hash_from_file,
    create_certificate,
    build_certificate_record,
    format_certificate,
    normalize_hash,
    is_valid_hash
)

JOHN_DOE_HASH = '5fb2f6c7d23370f9cf1001b11ea7790ffacdee7ec0f2c3fa2ccf27e68312f127'
FILE_BODY_HASH = '90a57dd7e253b90be43d65313550b95e6d18fc2916367688e28849cd4b9d0518'


class HashUtilsTestCase(unittest.TestCase):
    def test_record_hash_matches_compact_json(self):
        record = build_certificate_record('John Doe', 'Blockchain', '2024-01-15', 'A+')
        self.assertEqual(generate_hash(record), JOHN_DOE_HASH)

    def test_field_order_is_significant(self):
        record = build_certificate_record('John Doe', 'Blockchain', '2024-01-15', 'A+')
        reordered = dict(reversed(list(record.items())))
        self.assertNotEqual(generate_hash(reordered), generate_hash(record))

    def test_string_and_bytes_inputs(self):
        expected = '2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'
        self.assertEqual(generate_hash('hello'), expected)
        self.assertEqual(generate_hash(b'hello'), expected)

    def test_non_ascii_is_hashed_as_utf8(self):
        self.assertEqual(generate_hash({'name': 'Zoë'}),
                         '6bd0ee7972d372ec1f8a3cc44302e5449751305d73c2b69b5a79c62f88a4ca77')

    def test_one_field_change_changes_hash(self):
        a = build_certificate_record('John Doe', 'Blockchain', '2024-01-15')
        b = build_certificate_record('Jane Doe', 'Blockchain', '2024-01-15')
        self.assertNotEqual(generate_hash(a), generate_hash(b))

    def test_grade_defaults_to_na(self):
        record = build_certificate_record('John Doe', 'Blockchain', '2024-01-15')
        self.assertEqual(record['grade'], 'N/A')
        self.assertEqual(list(record), ['studentName', 'courseName', 'issueDate', 'grade'])

    def test_file_hash_rewinds_stream(self):
        # Regression: hashing after save() used to hash an exhausted stream
        file = FileStorage(stream=io.BytesIO(b'certificate file body'), filename='cert.pdf')
        self.assertEqual(get_file_hash(file), FILE_BODY_HASH)
        self.assertEqual(file.stream.tell(), 0)
        self.assertEqual(get_file_hash(file), FILE_BODY_HASH)

    def test_hash_from_file_on_disk(self):
        fd, path = tempfile.mkstemp()
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(b'certificate file body')
            self.assertEqual(generate_hash_from_file(path), FILE_BODY_HASH)
        finally:
            os.unlink(path)

    def test_create_certificate_adds_timestamp_last(self):
        cert = create_certificate('John Doe', 'Blockchain', '2024-01-15', grade='A+', credits=3)
        self.assertEqual(list(cert), ['studentName', 'courseName', 'issueDate', 'grade', 'credits', 'timestamp'])
        self.assertIsInstance(cert['timestamp'], int)

    def test_format_certificate(self):
        text = format_certificate({'studentName': 'John Doe', 'grade': 'A+'})
        self.assertIn('studentName: John Doe', text)
        self.assertIn('grade: A+', text)

    def test_hash_validation(self):
        self.assertTrue(is_valid_hash(JOHN_DOE_HASH))
        self.assertTrue(is_valid_hash('0x' + JOHN_DOE_HASH.upper()))
        self.assertFalse(is_valid_hash('abc123'))
        self.assertFalse(is_valid_hash('z' * 64))
        self.assertFalse(is_valid_hash(None))
        self.assertEqual(normalize_hash('0x' + JOHN_DOE_HASH.upper()), JOHN_DOE_HASH)


if __name__ == '__main__':
    unittest.main()
