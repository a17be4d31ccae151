"""
Content Classifier

A reference whose final segment ends in a code suffix is executed as a
module; anything else is data and comes back as text.
"""

import codecs
from typing import Iterable, Optional

from resource_loader.core.reference import ResolvedReference


CODE = 'code'
DATA = 'data'

DEFAULT_CODE_SUFFIXES = ('.py',)
DEFAULT_ENCODING = 'utf-8'


def classify(resolved: ResolvedReference, code_suffixes: Iterable[str] = DEFAULT_CODE_SUFFIXES) -> str:
    """Return CODE or DATA for a resolved reference"""
    name = resolved.name.lower()
    for suffix in code_suffixes:
        if name.endswith(suffix.lower()):
            return CODE
    return DATA


def charset_from_content_type(content_type: Optional[str]) -> Optional[str]:
    """Pull the charset parameter out of a Content-Type header value"""
    if not content_type:
        return None
    for param in content_type.split(';')[1:]:
        key, _, value = param.partition('=')
        if key.strip().lower() == 'charset':
            value = value.strip().strip('"\'')
            return value or None
    return None


def decode_text(body: bytes, encoding: Optional[str] = None) -> str:
    """Decode a body as text (UTF-8 unless a charset was declared)"""
    try:
        codec = codecs.lookup(encoding or DEFAULT_ENCODING).name
    except LookupError:
        # Unknown charset label from a server, use the default
        codec = DEFAULT_ENCODING
    if codec == 'utf-8':
        codec = 'utf-8-sig'
    return body.decode(codec)
