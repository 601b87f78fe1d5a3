"""Make ``circle_sync`` and the test helpers importable without installing."""

import os
import sys

ROOT_DIR = os.path.abspath(os.path.dirname(__file__))
TESTS_DIR = os.path.join(ROOT_DIR, "tests")
for path in (TESTS_DIR, ROOT_DIR):
    if path not in sys.path:
        sys.path.insert(0, path)
