"""
Pytest configuration for scriptinfo tests.

Puts the project root on the Python path so the tests run from a plain
checkout.
"""

import sys
import os

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)
