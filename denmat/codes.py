"""
DENM cause / sub-cause reference table.

The table is read-only configuration shipped with the package as
``denm_codes.yaml``. Lookups never fail: unknown codes resolve to ``None``.
"""

import os
from functools import lru_cache

import yaml

CODES_FILE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "denm_codes.yaml")


@lru_cache(maxsize=None)
def load_code_table(path=CODES_FILE):
    """
    Load the reference table from YAML.

    Returns:
        dict: ``{"categories": {...}, "cause_codes": {code: {"name", "sub_cause_codes"}}}``
        with integer cause and sub-cause codes.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    causes = {}
    for code, info in (data.get("cause_codes") or {}).items():
        info = info or {}
        causes[int(code)] = {
            "name": info.get("name"),
            "sub_cause_codes": {
                int(sub): text for sub, text in (info.get("sub_cause_codes") or {}).items()
            },
        }

    categories = {}
    for key, info in (data.get("categories") or {}).items():
        info = info or {}
        categories[str(key)] = {
            "name": info.get("name"),
            "cause_codes": [int(c) for c in info.get("cause_codes", [])],
        }

    return {"categories": categories, "cause_codes": causes}


def _as_code(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def cause_text(cause_code):
    """Return the display text for a cause code, or None if unknown."""
    info = load_code_table()["cause_codes"].get(_as_code(cause_code))
    return info["name"] if info else None


def sub_cause_text(cause_code, sub_cause_code):
    """Return the display text of a sub-cause within its cause, or None."""
    info = load_code_table()["cause_codes"].get(_as_code(cause_code))
    if not info:
        return None
    return info["sub_cause_codes"].get(_as_code(sub_cause_code))


def cause_options():
    """List of (code, name) pairs in code order, for selectors."""
    causes = load_code_table()["cause_codes"]
    return [(code, causes[code]["name"]) for code in sorted(causes)]


def sub_cause_options(cause_code):
    """List of (code, text) pairs for the given cause; empty for unknown causes."""
    info = load_code_table()["cause_codes"].get(_as_code(cause_code))
    if not info:
        return []
    subs = info["sub_cause_codes"]
    return [(code, subs[code]) for code in sorted(subs)]


def category_for_cause(cause_code):
    """Return ``(key, name)`` of the category grouping a cause, or None."""
    code = _as_code(cause_code)
    for key, info in load_code_table()["categories"].items():
        if code in info["cause_codes"]:
            return key, info["name"]
    return None
