import os
import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

CFG_PATH = Path(os.environ.get('TILEDOCS_CONFIG', Path(__file__).resolve().parents[1] / 'tiledocs_config.json'))
DEFAULT_NODE_URL = 'http://127.0.0.1:7007'


def read_config():
    if not CFG_PATH.exists():
        return {}
    try:
        return json.loads(CFG_PATH.read_text(encoding='utf-8'))
    except ValueError:
        logger.warning('ignoring unreadable config file %s', CFG_PATH)
        return {}


def write_config(d: dict):
    CFG_PATH.write_text(json.dumps(d, indent=2), encoding='utf-8')


def set_node_url(url: str):
    cfg = read_config()
    cfg['node_url'] = url
    write_config(cfg)


def get_node_url() -> str:
    # environment wins over the config file
    return os.environ.get('TILEDOCS_NODE_URL') or read_config().get('node_url') or DEFAULT_NODE_URL


def get_log_dir() -> Path:
    return Path(os.environ.get('TILEDOCS_LOG_DIR') or read_config().get('log_dir') or 'logs')
