"""Repository layer: DB access helpers (SQLite).

Keep functions thin and focused, so services/providers avoid SQL strings.
"""
from __future__ import annotations
