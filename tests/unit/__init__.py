"""Unit tests for the resource loader.

Fast, isolated tests for individual components.
No network (requests.get is patched), filesystem only through tmp_path
and the fixture assets.
"""
