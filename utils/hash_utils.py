import hashlib
import json
import re
import time

HASH_PATTERN = re.compile(r'^(0x)?[0-9a-fA-F]{64}$')


def canonical_json(data):
    """Compact JSON in field order, byte-compatible with JSON.stringify."""
    return json.dumps(data, separators=(',', ':'), ensure_ascii=False)


def generate_hash(data):
    """
    Generate SHA-256 hash of certificate data.

    Args:
        data: dict/list (serialized to canonical JSON), str or bytes

    Returns:
        64-char lowercase hex digest
    """
    if isinstance(data, (dict, list)):
        data = canonical_json(data)
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def get_file_hash(file_storage):
    """Compute SHA-256 hash of uploaded file (streaming)"""
    sha256 = hashlib.sha256()
    for chunk in iter(lambda: file_storage.read(4096), b""):
        sha256.update(chunk)
    file_storage.seek(0)  # reset for potential re-use
    return sha256.hexdigest()


def generate_hash_from_file(file_path):
    with open(file_path, 'rb') as f:
        return get_file_hash(f)


def create_certificate(student_name, course_name, issue_date, **additional_data):
    """Certificate record with a creation timestamp (epoch ms)."""
    certificate = {
        'studentName': student_name,
        'courseName': course_name,
        'issueDate': issue_date,
    }
    certificate.update(additional_data)
    certificate['timestamp'] = int(time.time() * 1000)
    return certificate


def build_certificate_record(student_name, course_name, issue_date, grade=None):
    """
    Stable record used for issuing and verifying through the API.
    No timestamp, so the same inputs always hash the same.
    """
    return {
        'studentName': student_name,
        'courseName': course_name,
        'issueDate': issue_date,
        'grade': grade or 'N/A'
    }


def format_certificate(cert):
    lines = ['CERTIFICATE DETAILS:', '=' * 24]
    for key, value in cert.items():
        lines.append(f"{key}: {value}")
    lines.append('=' * 24)
    return "\n".join(lines)


def normalize_hash(value):
    """Strip an optional 0x prefix and lowercase."""
    value = value.strip()
    if value[:2].lower() == '0x':
        value = value[2:]
    return value.lower()


def is_valid_hash(value):
    if not isinstance(value, str):
        return False
    return bool(HASH_PATTERN.match(value.strip()))
