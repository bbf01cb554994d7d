from flask import Flask, render_template, request, jsonify, Response
import os
import io
import csv
import sqlite3
import datetime
import time
import threading
from werkzeug.utils import secure_filename
from dotenv import load_dotenv

from utils.hash_utils import (
    get_file_hash,
    generate_hash,
    build_certificate_record,
    normalize_hash,
    is_valid_hash
)
from chain.connect import load_contract_info, get_rpc_url
from chain.verifier import CertificateVerifierApp

load_dotenv() # Load environment variables from .env file

app = Flask(__name__)
app.secret_key = os.getenv('SECRET_KEY', 'change-me-in-production')
app.config['DATABASE'] = os.getenv('DATABASE_PATH', os.path.join(app.root_path, 'database', 'verifier.db'))
app.config['TRANSACTION_LOG'] = os.getenv('TRANSACTION_LOG_PATH', os.path.join(app.root_path, 'transaction_logs.txt'))
app.config['UPLOAD_FOLDER'] = os.getenv('UPLOAD_FOLDER', os.path.join(app.root_path, 'uploads', 'certificates'))

# Set by initialize_blockchain(); None means startup never got that far
blockchain_app = None
contract_info = None
# initialize_blockchain() runs once per process, from __main__ or the first request
init_attempted = False
init_lock = threading.Lock()


def get_db_connection():
    db_path = app.config['DATABASE']
    os.makedirs(os.path.dirname(db_path) or '.', exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.row_factory = sqlite3.Row
    return conn


def create_tables():
    conn = get_db_connection()
    conn.execute('''CREATE TABLE IF NOT EXISTS transaction_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        action TEXT NOT NULL,
        details TEXT,
        cert_hash TEXT,
        tx_id TEXT,
        timestamp TEXT
    )''')
    conn.commit()
    conn.close()

create_tables()


def log_transaction(action, details, cert_hash=None, tx_id=None):
    try:
        timestamp = datetime.datetime.now().isoformat()

        # 1. DB Logging
        conn = get_db_connection()
        conn.execute('''INSERT INTO transaction_logs
                       (action, details, cert_hash, tx_id, timestamp)
                       VALUES (?, ?, ?, ?, ?)''',
                    (action, details, cert_hash, tx_id, timestamp))
        conn.commit()
        conn.close()

        # 2. File Logging
        log_entry = f"[{timestamp}] Action: {action} | Details: {details} | Hash: {cert_hash or 'N/A'} | TX: {tx_id or 'N/A'}\n"
        with open(app.config['TRANSACTION_LOG'], 'a') as f:
            f.write(log_entry)

    except Exception as e:
        print(f"Logging failed: {e}")


def initialize_blockchain():
    global blockchain_app, contract_info, init_attempted
    init_attempted = True
    try:
        contract_info = load_contract_info()
        blockchain_app = CertificateVerifierApp()

        print('Attempting to connect to blockchain...')
        print(f"Contract Address: {contract_info['address']}")

        if not blockchain_app.initialize(contract_info['address'], contract_info['abi']):
            raise RuntimeError('Failed to connect to blockchain - check chain/verifier.py initialization')

        print('Blockchain connection established')
        return True
    except Exception as e:
        print(f"Blockchain initialization failed: {e}")
        print('Make sure:')
        print(f"   1. An Ethereum node is reachable at {get_rpc_url()}")
        print('   2. The contract is deployed: python -m chain.deploy_certificate')
        return False


def request_data():
    """JSON object body or form fields."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form


def chain_not_ready():
    """Error response when the chain client can't serve a request, else None."""
    if blockchain_app is None:
        return jsonify({'error': 'Blockchain not initialized'}), 500
    if blockchain_app.contract is None:
        return jsonify({'error': 'Smart contract not ready. Try again in a moment.'}), 503
    return None


def uploaded_certificate():
    file = request.files.get('certificate')
    if file is None or file.filename == '':
        return None
    return file


@app.before_request
def ensure_blockchain():
    # Covers `flask run` and WSGI servers, where __main__ never runs
    if init_attempted:
        return
    with init_lock:
        if not init_attempted:
            initialize_blockchain()


@app.after_request
def disable_cache(response):
    response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, proxy-revalidate'
    response.headers['Pragma'] = 'no-cache'
    response.headers['Expires'] = '0'
    return response


@app.route('/')
def index():
    return render_template('index.html')


@app.route('/api/status')
def status():
    return jsonify({
        'success': True,
        'state': blockchain_app.state if blockchain_app else 'disconnected',
        'rpcUrl': blockchain_app.rpc_url if blockchain_app else get_rpc_url(),
        'contractAddress': contract_info['address'] if contract_info else None
    })


@app.route('/api/contract-info')
def get_contract_info():
    try:
        if blockchain_app is None:
            return jsonify({'error': 'Blockchain not initialized'}), 500

        info = blockchain_app.get_contract_info()
        return jsonify({
            'success': True,
            'contractAddress': str(contract_info['address']) if contract_info else None,
            'contractOwner': str(info['contractOwner']) if info else None,
            'signerAddress': str(info['signerAddress']) if info else None,
            'signerBalance': str(info['signerBalance']) if info else None,
            'networkId': str(info['networkId']) if info else None
        })
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@app.route('/api/issue-certificate', methods=['POST'])
def issue_certificate():
    try:
        not_ready = chain_not_ready()
        if not_ready:
            return not_ready

        data = request_data()
        student_name = data.get('studentName')
        course_name = data.get('courseName')
        issue_date = data.get('issueDate')

        if not student_name or not course_name or not issue_date:
            return jsonify({'error': 'Missing required fields: studentName, courseName, issueDate'}), 400

        certificate = build_certificate_record(student_name, course_name, issue_date, data.get('grade'))
        metadata = {
            'institution': data.get('institution') or 'Unknown Institution',
            'certificateType': 'Course Completion',
            'issuedVia': 'Web Interface'
        }

        print(f"HTTP issue request: {certificate} {metadata}")
        result = blockchain_app.issue_certificate(certificate, metadata)

        if not result['success']:
            return jsonify({'error': result['error']}), 500

        log_transaction('CERTIFICATE_ISSUE', f"{student_name} - {course_name}",
                        result['hash'], result['transactionHash'])
        return jsonify({
            'success': True,
            'message': 'Certificate issued successfully!',
            'certificateHash': result['hash'],
            'transactionHash': result['transactionHash'],
            'blockNumber': result['blockNumber'],
            'certificate': certificate,
            'metadata': metadata
        })
    except Exception as e:
        print(f"Error issuing certificate: {e}")
        return jsonify({'error': str(e)}), 500


@app.route('/api/verify-certificate', methods=['POST'])
def verify_certificate():
    try:
        not_ready = chain_not_ready()
        if not_ready:
            return not_ready

        data = request_data()
        # Must match the issued record field for field
        certificate = build_certificate_record(
            data.get('studentName'),
            data.get('courseName'),
            data.get('issueDate'),
            data.get('grade')
        )

        print(f"HTTP verify request: {certificate}")
        result = blockchain_app.verify_certificate(certificate)

        if 'error' in result:
            return jsonify({'error': result['error']}), 500

        if result['valid']:
            message = 'Certificate is authentic!'
        elif result.get('isRevoked'):
            message = 'Certificate has been revoked'
        else:
            message = 'Certificate not found or invalid'

        return jsonify({
            'success': True,
            'valid': result['valid'],
            'message': message,
            'details': result if result.get('exists') else None,
            'searchedHash': result.get('hash')
        })
    except Exception as e:
        print(f"Error verifying certificate: {e}")
        return jsonify({'error': str(e)}), 500


@app.route('/api/issue-file', methods=['POST'])
def issue_file():
    try:
        not_ready = chain_not_ready()
        if not_ready:
            return not_ready

        file = uploaded_certificate()
        if file is None:
            return jsonify({'error': 'No file uploaded'}), 400

        filename = secure_filename(file.filename) or 'certificate'
        # Calculate hash first (before stream is consumed by save)
        file_hash = get_file_hash(file)

        data = request.form
        metadata = {
            'institution': data.get('institution') or 'Unknown Institution',
            'certificateType': 'File Upload',
            'issuedVia': 'Web Interface',
            'fileName': filename
        }

        # Store before touching the chain; a registered hash can't be re-issued
        os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)
        stored_path = os.path.join(app.config['UPLOAD_FOLDER'], f"{int(time.time() * 1000)}-{filename}")
        file.save(stored_path)

        result = blockchain_app.issue_hash(file_hash, metadata)
        if not result['success']:
            os.remove(stored_path)
            return jsonify({'error': result['error']}), 500

        log_transaction('CERTIFICATE_FILE_ISSUE', f"Uploaded {filename}", file_hash, result['transactionHash'])
        return jsonify({
            'success': True,
            'message': 'Certificate file issued successfully!',
            'fileHash': file_hash,
            'transactionHash': result['transactionHash'],
            'blockNumber': result['blockNumber'],
            'metadata': metadata
        })
    except Exception as e:
        print(f"Error issuing file: {e}")
        return jsonify({'error': str(e)}), 500


@app.route('/api/verify-file', methods=['POST'])
def verify_file():
    try:
        not_ready = chain_not_ready()
        if not_ready:
            return not_ready

        file = uploaded_certificate()
        if file is None:
            return jsonify({'error': 'No file uploaded'}), 400

        file_hash = get_file_hash(file)

        if not blockchain_app.certificate_exists(file_hash):
            return jsonify({
                'success': True,
                'valid': False,
                'message': 'Certificate file not found on blockchain',
                'details': {'fileHash': file_hash, 'fileName': file.filename}
            })

        result = blockchain_app.verify_hash(file_hash)
        if 'error' in result:
            return jsonify({'error': result['error']}), 500

        return jsonify({
            'success': True,
            'valid': result['valid'],
            'message': 'Certificate is revoked' if result['isRevoked'] else 'File certificate is authentic!',
            'details': {
                'fileHash': file_hash,
                'issuer': result['issuer'],
                'issueDate': result['issueDate'],
                'metadata': result['metadata'],
                'isRevoked': result['isRevoked'],
                'fileName': file.filename
            }
        })
    except Exception as e:
        print(f"Error verifying file: {e}")
        return jsonify({'error': str(e)}), 500


@app.route('/api/certificate/<cert_hash>')
def get_certificate(cert_hash):
    try:
        not_ready = chain_not_ready()
        if not_ready:
            return not_ready

        if not is_valid_hash(cert_hash):
            return jsonify({'error': 'Invalid certificate hash'}), 400
        cert_hash = normalize_hash(cert_hash)

        if not blockchain_app.certificate_exists(cert_hash):
            return jsonify({'error': 'Certificate not found'}), 404

        result = blockchain_app.verify_hash(cert_hash)
        if 'error' in result:
            return jsonify({'error': result['error']}), 500

        return jsonify({
            'success': True,
            'certificate': {
                'hash': cert_hash,
                'issuer': result['issuer'],
                'issueDate': result['issueDate'],
                'metadata': result['metadata'],
                'isRevoked': result['isRevoked'],
                'valid': result['valid']
            }
        })
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@app.route('/api/revoke-certificate', methods=['POST'])
def revoke_certificate():
    try:
        not_ready = chain_not_ready()
        if not_ready:
            return not_ready

        data = request_data()
        cert_hash = data.get('hash')
        if cert_hash:
            if not is_valid_hash(cert_hash):
                return jsonify({'error': 'Invalid certificate hash'}), 400
            cert_hash = normalize_hash(cert_hash)
        else:
            if not data.get('studentName') or not data.get('courseName') or not data.get('issueDate'):
                return jsonify({'error': 'Provide a hash or studentName, courseName, issueDate'}), 400
            cert_hash = generate_hash(build_certificate_record(
                data.get('studentName'),
                data.get('courseName'),
                data.get('issueDate'),
                data.get('grade')
            ))

        result = blockchain_app.revoke_hash(cert_hash)
        if not result['success']:
            return jsonify({'error': result['error']}), 500

        log_transaction('CERTIFICATE_REVOKE', 'Revoked certificate', cert_hash, result['transactionHash'])
        return jsonify({
            'success': True,
            'message': 'Certificate revoked',
            'certificateHash': cert_hash,
            'transactionHash': result['transactionHash'],
            'blockNumber': result['blockNumber']
        })
    except Exception as e:
        print(f"Error revoking certificate: {e}")
        return jsonify({'error': str(e)}), 500


@app.route('/api/logs')
def transaction_logs():
    conn = None
    try:
        limit = request.args.get('limit', 100, type=int)
        conn = get_db_connection()
        logs = conn.execute('SELECT * FROM transaction_logs ORDER BY id DESC LIMIT ?', (limit,)).fetchall()
        return jsonify({'success': True, 'logs': [dict(log) for log in logs]})
    except Exception as e:
        return jsonify({'error': str(e)}), 500
    finally:
        if conn is not None:
            conn.close()


@app.route('/api/logs/download')
def download_logs():
    conn = None
    try:
        conn = get_db_connection()
        logs = conn.execute('''
            SELECT timestamp, action, details, cert_hash, tx_id
            FROM transaction_logs
            ORDER BY id DESC''').fetchall()
    except Exception as e:
        return jsonify({'error': str(e)}), 500
    finally:
        if conn is not None:
            conn.close()

    output = io.StringIO()
    writer = csv.writer(output)

    # Header
    writer.writerow(['Timestamp', 'Action', 'Details', 'Certificate Hash', 'Transaction ID'])

    # Data
    for log in logs:
        writer.writerow([
            log['timestamp'],
            log['action'],
            log['details'],
            log['cert_hash'],
            log['tx_id']
        ])

    return Response(
        output.getvalue(),
        mimetype="text/csv",
        headers={"Content-disposition": "attachment; filename=certificate_logs.csv"}
    )


if __name__ == '__main__':
    connected = initialize_blockchain()
    port = int(os.getenv('PORT', '3000'))

    print('Certificate Verifier Web Server Started!')
    print(f"Open your browser and go to: http://localhost:{port}")
    print(f"Contract Address: {contract_info['address'] if contract_info else 'Not loaded'}")
    print(f"Blockchain Status: {'Connected' if connected else 'Not Connected'}")

    app.run(port=port, debug=os.getenv('FLASK_DEBUG') == '1')
