"""
Load Log

Append-only journal of what the loader did: which references it read,
fetched, revalidated or executed, and what went wrong.

Design:
- Logs stored in TSV files (human-readable, grep-able)
- Append-only (immutable history)
- Each journal has its own directory: logs/{name}/log.tsv
- Log rotation when file exceeds size limit
- Query logs with filters (level, custom fields)
"""

import csv
import hashlib
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


BASE_FIELDS = ['entry_id', 'timestamp', 'level', 'message']


class LoadLog:
    """
    TSV journal of load events.

    Entries are stored in:
    logs/{name}/log.tsv
    """

    def __init__(
        self,
        base_dir: Path | str,
        name: str = 'loader',
        max_log_size: Optional[int] = None,
    ):
        """
        Initialize the journal.

        Args:
            base_dir: Base directory for log storage
            name: Journal name (subdirectory under logs/)
            max_log_size: Maximum log file size in bytes before rotation
                         (default: 10MB)
        """
        self.name = name
        self.base_dir = Path(base_dir)
        self.max_log_size = max_log_size or (10 * 1024 * 1024)

        self.log_dir = self.base_dir / 'logs' / name
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.log_file = self.log_dir / 'log.tsv'

        # Loads run on worker threads during structural resolution
        self._lock = threading.Lock()

    def log(self, level: str, message: str, **kwargs) -> None:
        """
        Append an entry.

        Args:
            level: Log level (DEBUG, INFO, ERROR, ...)
            message: Log message
            **kwargs: Additional fields (reference, source, status_code, ...)
        """
        timestamp = datetime.now().isoformat()
        entry = {
            'entry_id': self._generate_entry_id(timestamp, level, message),
            'timestamp': timestamp,
            'level': level,
            'message': message,
            **kwargs,
        }

        # Don't log empty fields
        entry = {k: v for k, v in entry.items() if v is not None}

        with self._lock:
            self._rotate_if_needed()

            fieldnames = self._get_fieldnames()
            new_fields = [key for key in entry if key not in fieldnames]
            is_new_file = not self.log_file.exists()

            if new_fields and not is_new_file:
                # Header must grow, rewrite the current file with it
                self._rewrite_with_fields(fieldnames + new_fields)
            fieldnames += new_fields

            with open(self.log_file, 'a', newline='') as f:
                writer = csv.DictWriter(f, fieldnames=fieldnames, delimiter='\t')
                if is_new_file:
                    writer.writeheader()
                writer.writerow(entry)

    def info(self, message: str, **kwargs) -> None:
        self.log('INFO', message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self.log('ERROR', message, **kwargs)

    def get_logs(
        self,
        level: Optional[Union[str, List[str]]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        **filters,
    ) -> List[Dict[str, Any]]:
        """
        Get journal entries, oldest first.

        Args:
            level: Filter by level (string or list of strings)
            limit: Maximum number of entries to return
            offset: Number of entries to skip
            **filters: Field filters (e.g., reference='http://host/a.txt')

        Returns:
            List of entries (dictionaries, values as strings)
        """
        files = sorted(self.log_dir.glob('log-*.tsv'))
        if self.log_file.exists():
            files.append(self.log_file)

        entries = []
        for path in files:
            with open(path, 'r', newline='') as f:
                reader = csv.DictReader(f, delimiter='\t')
                for row in reader:
                    entries.append({k: v for k, v in row.items() if v != ''})

        if level is not None:
            if isinstance(level, str):
                level = [level]
            entries = [e for e in entries if e.get('level') in level]

        for key, value in filters.items():
            entries = [e for e in entries if e.get(key) == str(value)]

        if offset > 0:
            entries = entries[offset:]

        if limit is not None:
            entries = entries[:limit]

        return entries

    def _get_fieldnames(self) -> List[str]:
        """Get existing fieldnames from log file"""
        if not self.log_file.exists():
            return list(BASE_FIELDS)

        with open(self.log_file, 'r', newline='') as f:
            reader = csv.DictReader(f, delimiter='\t')
            return list(reader.fieldnames or BASE_FIELDS)

    def _rewrite_with_fields(self, fieldnames: List[str]) -> None:
        with open(self.log_file, 'r', newline='') as f:
            rows = list(csv.DictReader(f, delimiter='\t'))

        with open(self.log_file, 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames, delimiter='\t')
            writer.writeheader()
            writer.writerows(rows)

    def _rotate_if_needed(self) -> None:
        """Rotate log file if it exceeds max size"""
        if not self.log_file.exists():
            return

        if self.log_file.stat().st_size < self.max_log_size:
            return

        timestamp = datetime.now().strftime('%Y%m%d-%H%M%S-%f')
        self.log_file.rename(self.log_dir / f'log-{timestamp}.tsv')

    def _generate_entry_id(self, timestamp: str, level: str, message: str) -> str:
        """Hash of timestamp + journal name + message, for deduplication"""
        content = f"{timestamp}:{self.name}:{level}:{message}"
        return hashlib.sha256(content.encode()).hexdigest()[:16]
