import argparse
import json
import logging
import sys
from logging.handlers import RotatingFileHandler

from . import config
from .client import Client, ContentUpdate, Session
from .did import authenticate, resolve
from .errors import InvalidInput, TileDocsError
from .http_client import HttpStore
from .store import DocumentStore

logger = logging.getLogger(__name__)


def configure_logging():
    # rotating file handler on the root logger, installed once
    root = logging.getLogger()
    if any(isinstance(h, RotatingFileHandler) for h in root.handlers):
        return
    logdir = config.get_log_dir()
    logdir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(str(logdir / 'tiledocs.log'), maxBytes=5_000_000, backupCount=5)
    handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s'))
    root.setLevel(logging.INFO)
    root.addHandler(handler)


def parse_seed(text: str) -> bytes:
    try:
        seed = bytes.fromhex(text)
    except ValueError:
        raise InvalidInput('seed must be hex encoded')
    if len(seed) != 32:
        raise InvalidInput(f'seed must be 32 bytes (64 hex chars), got {len(seed)} bytes')
    return seed


def parse_content(text: str):
    try:
        return json.loads(text)
    except ValueError as e:
        raise InvalidInput(f'content is not valid JSON: {e}')


def make_store(args):
    if getattr(args, 'local', False):
        return DocumentStore()
    return HttpStore(getattr(args, 'node', None) or config.get_node_url())


def session_for(args) -> Session:
    return Session(authenticate(parse_seed(args.seed)))


def build_parser():
    parser = argparse.ArgumentParser(prog='tiledocs')
    parser.add_argument('--local', action='store_true', help='Use the local SQLite store instead of a node')
    parser.add_argument('--node', help='Node URL (overrides config)')
    sub = parser.add_subparsers(dest='cmd')
    servep = sub.add_parser('serve')
    servep.add_argument('--host', default='127.0.0.1')
    servep.add_argument('--port', type=int, default=7007)
    nodep = sub.add_parser('node-set')
    nodep.add_argument('url')
    didp = sub.add_parser('did')
    didp.add_argument('--seed', required=True, help='32-byte seed as hex')
    resp = sub.add_parser('resolve')
    resp.add_argument('identifier')
    createp = sub.add_parser('create')
    createp.add_argument('--seed', required=True)
    createp.add_argument('--content', required=True, help='JSON content')
    createp.add_argument('--schema', help='Schema commit id')
    createp.add_argument('--family')
    createp.add_argument('--tag', action='append', dest='tags')
    createp.add_argument('--deterministic', action='store_true')
    showp = sub.add_parser('show')
    showp.add_argument('id')
    logp = sub.add_parser('log')
    logp.add_argument('id')
    updatep = sub.add_parser('update')
    updatep.add_argument('id')
    updatep.add_argument('--seed', required=True)
    updatep.add_argument('--content', required=True)
    updatep.add_argument('--merge', action='store_true', help='Shallow-merge into current content')
    schemap = sub.add_parser('schema-create')
    schemap.add_argument('--seed', required=True)
    schemap.add_argument('file')
    validatep = sub.add_parser('validate')
    validatep.add_argument('schema')
    validatep.add_argument('--content', required=True)
    sub.add_parser('status')
    sub.add_parser('demo')
    return parser


def run_command(args) -> int:
    if args.cmd == 'serve':
        from .ui import app
        app.run(host=args.host, port=args.port)
        return 0
    if args.cmd == 'node-set':
        config.set_node_url(args.url)
        print('node url set to', args.url)
        return 0
    if args.cmd == 'did':
        print(authenticate(parse_seed(args.seed)).did)
        return 0
    if args.cmd == 'resolve':
        print(json.dumps(resolve(args.identifier), indent=2))
        return 0
    if args.cmd == 'demo':
        from .demo import run
        run(make_store(args))
        return 0
    client = Client(make_store(args))
    if args.cmd == 'create':
        sid = client.create_document(session_for(args), parse_content(args.content), schema=args.schema,
                                     family=args.family, tags=args.tags, deterministic=args.deterministic)
        print(sid)
        return 0
    if args.cmd == 'show':
        doc = client.load_document(args.id)
        print(json.dumps({'id': str(doc.id), 'commit': str(doc.commit_id), 'pinned': doc.is_pinned, 'metadata': doc.metadata, 'content': doc.content}, indent=2))
        return 0
    if args.cmd == 'log':
        for c in client.commit_log(args.id):
            print(c)
        return 0
    if args.cmd == 'update':
        doc = client.load_document(args.id)
        content = parse_content(args.content)
        change = ContentUpdate.merge(content) if args.merge else ContentUpdate.replace(content)
        doc = client.update(session_for(args), doc, change)
        print(doc.commit_id)
        return 0
    if args.cmd == 'schema-create':
        with open(args.file, encoding='utf-8') as fh:
            definition = parse_content(fh.read())
        print(client.create_schema(session_for(args), definition))
        return 0
    if args.cmd == 'validate':
        ok = client.validate(parse_content(args.content), args.schema)
        print('valid' if ok else 'invalid')
        return 0 if ok else 1
    if args.cmd == 'status':
        for sid in client.store.list_streams():
            doc = client.load_document(sid)
            print(f"{sid} owner={doc.owner} commits={len(doc.log)}")
        return 0
    return 2


def main(argv=None):
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.cmd:
        parser.print_help()
        return 2
    try:
        return run_command(args)
    except TileDocsError as e:
        logger.error('%s failed: %s %s', args.cmd, e.code, e.message)
        print(f'error: {e.code}: {e.message}', file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
