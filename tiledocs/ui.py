from flask import Flask, render_template_string, request, jsonify
from prometheus_client import generate_latest, Counter, CollectorRegistry, CONTENT_TYPE_LATEST
import logging
from . import db
from .errors import InvalidInput, TileDocsError
from .store import DocumentStore
from .streamid import StreamID, parse_commit_id, parse_stream_id

logger = logging.getLogger(__name__)

registry = CollectorRegistry()
COMMITS_ACCEPTED = Counter('tiledocs_commits_accepted_total', 'Commits accepted by this node', ['kind'], registry=registry)
COMMITS_REJECTED = Counter('tiledocs_requests_rejected_total', 'Requests rejected by this node', ['reason'], registry=registry)
READS = Counter('tiledocs_reads_total', 'Stream and commit loads served', registry=registry)

app = Flask(__name__)

INDEX_TMPL = '''
<h1>Streams</h1>
<ul>
{% for s in streams %}
  <li><code>{{s.id}}</code> | controller: {{s.controller}} | commits: {{s.commit_count}} | last updated: {{s.last_updated}}{% if s.family %} | family: {{s.family}}{% endif %}</li>
{% endfor %}
</ul>
'''


def get_store() -> DocumentStore:
    store = app.config.get('STORE')
    if store is None:
        store = DocumentStore()
        app.config['STORE'] = store
    return store


def _body(key):
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or key not in data:
        raise InvalidInput(f'request body must be a JSON object with {key!r}')
    return data[key]


@app.errorhandler(TileDocsError)
def handle_error(e):
    COMMITS_REJECTED.labels(reason=e.code).inc()
    logger.info('%s %s rejected: %s %s', request.method, request.path, e.code, e.message)
    return jsonify(e.to_dict()), e.status


@app.route('/')
def index():
    get_store()
    rows = db.list_streams(limit=200)
    streams = [{'id': str(StreamID(r['stream_id'])), 'controller': r['controller'], 'commit_count': r['commit_count'],
                'last_updated': r['last_updated'], 'family': r['family']} for r in rows]
    return render_template_string(INDEX_TMPL, streams=streams)


@app.route('/health')
def health():
    # basic health: DB accessible
    try:
        get_store()
        conn = db.get_conn()
        conn.execute('SELECT 1').fetchone()
        conn.close()
        return jsonify({'status': 'ok'})
    except Exception:
        logger.exception('health check failed')
        return jsonify({'status': 'error'}), 500


@app.route('/metrics')
def metrics():
    return generate_latest(registry), 200, {'Content-Type': CONTENT_TYPE_LATEST}


@app.route('/admin/metrics')
def admin_metrics():
    get_store()
    return jsonify(db.counts())


@app.route('/api/v0/streams', methods=['POST'])
def api_create_stream():
    genesis = _body('genesis')
    state = get_store().create(genesis)
    COMMITS_ACCEPTED.labels(kind='genesis').inc()
    return jsonify(state), 201


@app.route('/api/v0/streams')
def api_list_streams():
    try:
        limit = int(request.args.get('limit') or 100)
    except ValueError:
        raise InvalidInput('limit must be an integer')
    return {'streams': get_store().list_streams(limit)}


@app.route('/api/v0/streams/<stream_id>')
def api_load_stream(stream_id):
    state = get_store().load(parse_stream_id(stream_id))
    READS.inc()
    return jsonify(state)


@app.route('/api/v0/streams/<stream_id>/commits', methods=['POST'])
def api_apply_commit(stream_id):
    signed = _body('commit')
    state = get_store().apply(stream_id, signed)
    COMMITS_ACCEPTED.labels(kind='update').inc()
    return jsonify(state)


@app.route('/api/v0/commits/<commit_id>')
def api_load_commit(commit_id):
    state = get_store().load(parse_commit_id(commit_id))
    READS.inc()
    return jsonify(state)
