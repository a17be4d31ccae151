"""
Loader configuration

Reads loader.tsv (key<TAB>value rows) for loader settings.
Falls back to environment variables or defaults if the file doesn't exist
or doesn't mention a key. Keyword arguments override everything.
"""

import os
import csv
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from resource_loader import __version__


ENV_PREFIX = 'RESOURCE_LOADER_'

DEFAULTS = {
    'timeout': 10.0,
    'max_workers': 8,
    'code_suffixes': ('.py',),
    'serialize_revalidation': True,
    'log_dir': None,
    'user_agent': f'resource-loader/{__version__}',
}

TRUE_VALUES = ('1', 'true', 'yes', 'on')


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in TRUE_VALUES


def _parse_suffixes(value: str) -> Tuple[str, ...]:
    suffixes = []
    for part in value.split(','):
        part = part.strip()
        if not part:
            continue
        if not part.startswith('.'):
            part = '.' + part
        suffixes.append(part)
    return tuple(suffixes)


PARSERS = {
    'timeout': float,
    'max_workers': int,
    'code_suffixes': _parse_suffixes,
    'serialize_revalidation': _parse_bool,
    'log_dir': lambda value: value.strip() or None,
    'user_agent': str.strip,
}


class LoaderConfig:
    """Load and hold loader settings"""

    def __init__(self, config_file: str = "loader.tsv", **overrides: Any):
        self.config_file = Path(config_file)
        self.settings: Dict[str, Any] = dict(DEFAULTS)
        self._load()

        for key, value in overrides.items():
            if key not in DEFAULTS:
                raise TypeError(f"Unknown loader setting: {key}")
            if key == 'code_suffixes' and isinstance(value, str):
                value = _parse_suffixes(value)
            self.settings[key] = value

        if self.settings['max_workers'] < 1:
            raise ValueError("max_workers must be at least 1")

    def _load(self):
        """Apply environment variables, then the TSV file"""
        for key, parse in PARSERS.items():
            raw = os.environ.get(ENV_PREFIX + key.upper())
            if raw is not None:
                self.settings[key] = parse(raw)

        if not self.config_file.exists():
            return

        with open(self.config_file, 'r', encoding='utf-8') as f:
            reader = csv.reader(
                (line for line in f if not line.startswith('#')),
                delimiter='\t'
            )

            for row in reader:
                # Skip empty and malformed rows
                if len(row) < 2 or not row[0].strip():
                    continue

                key = row[0].strip()
                if key not in PARSERS:
                    raise ValueError(f"Unknown setting '{key}' in {self.config_file}")
                self.settings[key] = PARSERS[key](row[1])

    @property
    def timeout(self) -> float:
        return self.settings['timeout']

    @property
    def max_workers(self) -> int:
        return self.settings['max_workers']

    @property
    def code_suffixes(self) -> Tuple[str, ...]:
        return tuple(self.settings['code_suffixes'])

    @property
    def serialize_revalidation(self) -> bool:
        return self.settings['serialize_revalidation']

    @property
    def log_dir(self) -> Optional[str]:
        return self.settings['log_dir']

    @property
    def user_agent(self) -> str:
        return self.settings['user_agent']

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.settings)


# Global instance (lazy loaded)
_config = None


def get_config() -> LoaderConfig:
    """Get the global loader configuration"""
    global _config
    if _config is None:
        _config = LoaderConfig()
    return _config


def reload_config():
    """Reload configuration from file and environment"""
    global _config
    _config = LoaderConfig()
