#!/usr/bin/env python3
"""
Issue Reconcile API
Provides REST endpoints for comparing two synthesis documents
"""

from flask import Flask, jsonify, request
import os
import hmac

from compare_runs import DEFAULT_VARIANT_THRESHOLD, compare_syntheses
from stable_ids import generate_stable_id
from synthesis import SynthesisLoadError, synthesis_from_dict

ENV_PREFIX = 'ISSUE_RECONCILE_'
LOOPBACK_ADDRS = ('127.0.0.1', '::1')
DEFAULT_BIND = '127.0.0.1'
DEFAULT_PORT = 5000

app = Flask(__name__)

def env(name, default=''):
    return os.environ.get(ENV_PREFIX + name, default).strip()

def check_access():
    """
    Return an error message when the caller may not use the API, else ''.

    With ISSUE_RECONCILE_API_TOKEN set every request needs that bearer
    token. Without it only loopback clients are served, unless
    ISSUE_RECONCILE_ALLOW_REMOTE=1.
    """
    token = env('API_TOKEN')
    if not token:
        if env('ALLOW_REMOTE', '0') == '1' or request.remote_addr in LOOPBACK_ADDRS:
            return ''
        return 'Remote access disabled; use localhost or configure a token'

    scheme, _, presented = request.headers.get('Authorization', '').partition(' ')
    if scheme != 'Bearer' or not presented.strip():
        return 'Missing bearer token'
    if not hmac.compare_digest(presented.strip(), token):
        return 'Invalid bearer token'
    return ''

@app.before_request
def require_access():
    """Every endpoint except the health check goes through check_access."""
    if request.endpoint == 'health_check':
        return None
    denied = check_access()
    if denied:
        return error_response(denied, 403)
    return None

def error_response(message, status):
    return jsonify({
        'success': False,
        'error': message
    }), status

def json_object_body():
    """Request body as a dict, or None when it is missing or not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None

def parse_threshold(value):
    """Validate variantThreshold; returns (threshold, error)."""
    if value is None:
        return DEFAULT_VARIANT_THRESHOLD, ''
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None, 'variantThreshold must be a number'
    if not 0 <= value <= 1:
        return None, 'variantThreshold must be between 0 and 1'
    return float(value), ''

@app.route('/api/compare', methods=['POST'])
def compare():
    """Compare a baseline and a current synthesis"""
    data = json_object_body()
    if data is None:
        return error_response('Request body must be a JSON object', 400)

    baseline_raw = data.get('baseline')
    current_raw = data.get('current')
    if not isinstance(baseline_raw, dict) or not isinstance(current_raw, dict):
        return error_response('Missing baseline or current synthesis', 400)

    threshold, threshold_error = parse_threshold(data.get('variantThreshold'))
    if threshold_error:
        return error_response(threshold_error, 400)

    try:
        baseline = synthesis_from_dict(baseline_raw)
        current = synthesis_from_dict(current_raw)
    except SynthesisLoadError as exc:
        return error_response(f'Malformed synthesis: {exc}', 400)
    except (KeyError, TypeError, ValueError) as exc:
        return error_response(f'Malformed synthesis: {exc!r}', 400)

    try:
        result = compare_syntheses(
            baseline,
            current,
            str(data.get('baselineLabel') or 'baseline'),
            str(data.get('currentLabel') or 'current'),
            variant_threshold=threshold,
        )
    except (KeyError, TypeError) as exc:
        return error_response(f'Unknown severity: {exc!r}', 400)

    app.logger.info(
        'Compared %s -> %s: %d resolved, %d new, %d persisting',
        result.baseline_label,
        result.current_label,
        len(result.resolved_issues),
        len(result.new_issues),
        len(result.persisting_issues),
    )
    return jsonify({
        'success': True,
        'result': result.to_dict()
    })

@app.route('/api/stable-id', methods=['POST'])
def stable_id():
    """Generate the stable id for a title and discriminator"""
    data = json_object_body()
    if data is None or 'title' not in data or 'discriminator' not in data:
        return error_response('Missing title or discriminator', 400)

    title = data['title']
    discriminator = data['discriminator']
    if not isinstance(title, str) or not isinstance(discriminator, str):
        return error_response('title and discriminator must be strings', 400)

    return jsonify({
        'success': True,
        'id': generate_stable_id(title, discriminator)
    })

@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint"""
    return jsonify({
        'success': True,
        'status': 'healthy'
    })

def server_address():
    """(host, port) from ISSUE_RECONCILE_BIND / ISSUE_RECONCILE_PORT."""
    host = env('BIND') or DEFAULT_BIND
    port = env('PORT')
    if port.isdigit() and 0 < int(port) < 65536:
        return host, int(port)
    if port:
        app.logger.warning('Ignoring invalid %sPORT=%r, using %d', ENV_PREFIX, port, DEFAULT_PORT)
    return host, DEFAULT_PORT

def main():
    host, port = server_address()
    app.run(host=host, port=port, debug=False)

if __name__ == '__main__':
    main()
