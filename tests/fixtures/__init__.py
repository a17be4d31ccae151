"""
Test fixtures for the resource loader

This package contains fixtures used for testing:
- Sample assets (file.txt, index.py, relative.py, installed/)
- Mock HTTP responses
"""

import os

from unittest.mock import Mock
from requests.structures import CaseInsensitiveDict

# Path to fixtures directory
FIXTURES_DIR = os.path.dirname(__file__)
ASSETS_DIR = os.path.join(FIXTURES_DIR, 'assets')


def asset(*parts):
    """Absolute path of a file under assets/"""
    return os.path.join(ASSETS_DIR, *parts)


def read_asset(*parts):
    with open(asset(*parts), 'rb') as f:
        return f.read()


def make_response(status_code, body=b'', headers=None):
    """Mock requests.Response with status, body and headers"""
    response = Mock()
    response.status_code = status_code
    response.content = body
    response.headers = CaseInsensitiveDict(headers or {})
    return response
