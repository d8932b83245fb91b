import sqlite3
import threading
from typing import Optional, Dict, Iterable, List, Tuple

class StorageDB:
    def __init__(self, db_path: str):
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.cursor = self.conn.cursor()
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self):
        with self._lock:
            # Participants: address -> Participant JSON, rowid keeps registration order
            self.cursor.execute('''
                CREATE TABLE IF NOT EXISTS participants (
                    address TEXT PRIMARY KEY,
                    data TEXT
                )
            ''')
            # Snapshot history: append-only
            self.cursor.execute('''
                CREATE TABLE IF NOT EXISTS snapshots (
                    idx INTEGER PRIMARY KEY,
                    timestamp INTEGER UNIQUE,
                    data TEXT
                )
            ''')
            # State table: Key-Value store for aggregates, owner, token balances
            self.cursor.execute('''
                CREATE TABLE IF NOT EXISTS state (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            ''')
            self.conn.commit()

    # --- Participant Methods ---
    def load_participants(self) -> List[Tuple[str, str]]:
        """Returns (address, data) rows in registration order."""
        with self._lock:
            self.cursor.execute('SELECT address, data FROM participants ORDER BY rowid')
            return self.cursor.fetchall()

    # --- Snapshot Methods ---
    def load_snapshots(self) -> List[str]:
        with self._lock:
            self.cursor.execute('SELECT data FROM snapshots ORDER BY idx')
            return [row[0] for row in self.cursor.fetchall()]

    # --- State Methods ---
    def get_state(self, key: str) -> Optional[str]:
        with self._lock:
            self.cursor.execute('SELECT value FROM state WHERE key = ?', (key,))
            row = self.cursor.fetchone()
            return row[0] if row else None

    def set_state(self, key: str, value: str):
        with self._lock:
            self.cursor.execute('INSERT OR REPLACE INTO state (key, value) VALUES (?, ?)', (key, value))
            self.conn.commit()

    # --- Atomic Batch ---
    def write_batch(self,
                    participants: Iterable[Tuple[str, str]] = (),
                    snapshots: Iterable[Tuple[int, int, str]] = (),
                    state: Optional[Dict[str, str]] = None):
        """
        Writes one committed engine operation in a single sqlite transaction.

        Args:
            participants: (address, data) rows to upsert
            snapshots: (idx, timestamp, data) rows to append
            state: key -> value pairs to upsert
        """
        with self._lock:
            try:
                for address, data in participants:
                    # Upsert keeps the original rowid (registration order)
                    self.cursor.execute(
                        'INSERT INTO participants (address, data) VALUES (?, ?) '
                        'ON CONFLICT(address) DO UPDATE SET data = excluded.data',
                        (address, data)
                    )
                for idx, timestamp, data in snapshots:
                    # Plain INSERT: an existing idx is an append-only violation
                    self.cursor.execute(
                        'INSERT INTO snapshots (idx, timestamp, data) VALUES (?, ?, ?)',
                        (idx, timestamp, data)
                    )
                for key, value in (state or {}).items():
                    self.cursor.execute('INSERT OR REPLACE INTO state (key, value) VALUES (?, ?)', (key, value))
                self.conn.commit()
            except sqlite3.Error:
                self.conn.rollback()
                raise

    def close(self):
        with self._lock:
            self.conn.close()
