import os
import sqlite3
import json
from pathlib import Path
from datetime import datetime

DB_PATH = Path(os.environ.get('TILEDOCS_DB_PATH', Path(__file__).resolve().parents[1] / 'tiledocs.db'))


def get_conn():
    conn = sqlite3.connect(str(DB_PATH), timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute('PRAGMA foreign_keys=ON')
    return conn


def init_db():
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)
    conn = get_conn()
    cur = conn.cursor()
    cur.executescript("""
    CREATE TABLE IF NOT EXISTS Streams (
        id INTEGER PRIMARY KEY,
        stream_id TEXT UNIQUE,
        controller TEXT,
        schema_ref TEXT,
        family TEXT,
        tags TEXT,
        tip_cid TEXT,
        created_at TEXT,
        last_updated TEXT
    );
    CREATE TABLE IF NOT EXISTS Commits (
        id INTEGER PRIMARY KEY,
        cid TEXT UNIQUE,
        stream_id TEXT,
        sequence INTEGER,
        prev_cid TEXT,
        signer_did TEXT,
        signature TEXT,
        commit_json TEXT,
        content_json TEXT,
        accepted_at TEXT,
        UNIQUE(stream_id, sequence),
        FOREIGN KEY(stream_id) REFERENCES Streams(stream_id) ON DELETE CASCADE
    );
    CREATE INDEX IF NOT EXISTS idx_commits_stream ON Commits(stream_id, sequence);
    """)
    conn.commit()
    conn.close()


def insert_stream(stream_id, controller, schema_ref, family, tags, signed, content):
    """Store a genesis commit as sequence 0. Returns False if the stream already exists."""
    now = datetime.utcnow().isoformat()
    conn = get_conn()
    cur = conn.cursor()
    try:
        cur.execute('BEGIN IMMEDIATE')
        cur.execute('INSERT OR IGNORE INTO Streams (stream_id, controller, schema_ref, family, tags, tip_cid, created_at, last_updated) VALUES (?, ?, ?, ?, ?, ?, ?, ?)',
                    (stream_id, controller, schema_ref, family, json.dumps(tags or []), stream_id, now, now))
        if cur.rowcount == 0:
            conn.rollback()
            return False
        cur.execute('INSERT INTO Commits (cid, stream_id, sequence, prev_cid, signer_did, signature, commit_json, content_json, accepted_at) VALUES (?, ?, 0, NULL, ?, ?, ?, ?, ?)',
                    (stream_id, stream_id, controller, signed['signatures'][0]['signature'], json.dumps(signed), json.dumps(content), now))
        conn.commit()
        return True
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def append_commit(stream_id, cid, prev_cid, signer_did, signed, content):
    """Append an accepted commit after the current tip. Returns its sequence, or None for a duplicate cid."""
    now = datetime.utcnow().isoformat()
    conn = get_conn()
    cur = conn.cursor()
    try:
        cur.execute('BEGIN IMMEDIATE')
        if cur.execute('SELECT 1 FROM Commits WHERE cid=?', (cid,)).fetchone():
            conn.rollback()
            return None
        row = cur.execute('SELECT MAX(sequence) as m FROM Commits WHERE stream_id=?', (stream_id,)).fetchone()
        seq = (row['m'] or 0) + 1
        cur.execute('INSERT INTO Commits (cid, stream_id, sequence, prev_cid, signer_did, signature, commit_json, content_json, accepted_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)',
                    (cid, stream_id, seq, prev_cid, signer_did, signed['signatures'][0]['signature'], json.dumps(signed), json.dumps(content), now))
        cur.execute('UPDATE Streams SET tip_cid=?, last_updated=? WHERE stream_id=?', (cid, now, stream_id))
        conn.commit()
        return seq
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def get_stream(stream_id):
    conn = get_conn()
    row = conn.execute('SELECT * FROM Streams WHERE stream_id=?', (stream_id,)).fetchone()
    conn.close()
    return row


def get_commit(cid):
    conn = get_conn()
    row = conn.execute('SELECT * FROM Commits WHERE cid=?', (cid,)).fetchone()
    conn.close()
    return row


def list_commits(stream_id, up_to_sequence=None):
    conn = get_conn()
    if up_to_sequence is None:
        rows = conn.execute('SELECT * FROM Commits WHERE stream_id=? ORDER BY sequence', (stream_id,)).fetchall()
    else:
        rows = conn.execute('SELECT * FROM Commits WHERE stream_id=? AND sequence<=? ORDER BY sequence', (stream_id, up_to_sequence)).fetchall()
    conn.close()
    return rows


def list_streams(limit=100):
    conn = get_conn()
    rows = conn.execute('SELECT s.*, (SELECT COUNT(*) FROM Commits c WHERE c.stream_id=s.stream_id) as commit_count FROM Streams s ORDER BY s.last_updated DESC LIMIT ?', (limit,)).fetchall()
    conn.close()
    return rows


def counts():
    conn = get_conn()
    streams = conn.execute('SELECT COUNT(*) as c FROM Streams').fetchone()['c']
    commits = conn.execute('SELECT COUNT(*) as c FROM Commits').fetchone()['c']
    conn.close()
    return {'streams': streams, 'commits': commits}
