"""
Package fixture found next to the modules that require it
"""

from . import helpers

name = 'installed'
