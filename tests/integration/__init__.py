"""End-to-end tests through ResourceLoader.load()."""
