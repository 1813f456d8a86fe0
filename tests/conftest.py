"""
Shared fixtures: a throwaway Moodle-like installation on disk.
"""
import json
import os
import sys
import tempfile

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

COMPONENTS = {
    "subsystems": {"access": "lib/access", "virtual": None},
    "plugintypes": {"mod": "mod", "local": "local"},
}


@pytest.fixture
def make_file():
    """Return a helper that writes ``content`` to ``root/relative``."""
    def _make(root, relative, content=""):
        path = os.path.join(root, *relative.split("/"))
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        return path
    return _make


@pytest.fixture
def moodle_root(make_file):
    """A root directory with lib/components.json and no source files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        make_file(tmpdir, "lib/components.json", json.dumps(COMPONENTS))
        yield tmpdir
