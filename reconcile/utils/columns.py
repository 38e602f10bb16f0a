# reconcile/utils/columns.py

from typing import Dict, List, Optional, Sequence

from reconcile.utils.errors import SchemaError


def clean_header(header) -> str:
    if header is None:
        return ""
    return str(header).strip().lower()


def find_column(headers: Sequence, synonyms: List[str]) -> Optional[int]:
    """Index of the first header matching any synonym (case-insensitive), else None."""
    cleaned = [clean_header(h) for h in headers]
    for idx, header in enumerate(cleaned):
        for name in synonyms:
            if header == name.lower():
                return idx
    return None


def resolve_columns(headers: Sequence, synonyms: Dict[str, List[str]]) -> Dict[str, int]:
    """
    Resolves each logical field to a column index.

    Raises:
        SchemaError: if any field has no matching header
    """
    mapping = {}
    missing = []
    for field_name, names in synonyms.items():
        idx = find_column(headers, names)
        if idx is None:
            missing.append(f"{field_name} ({' / '.join(names)})")
        else:
            mapping[field_name] = idx

    if missing:
        raise SchemaError(f"Required columns not found: {', '.join(missing)}")
    return mapping


def cell(row: Sequence, idx: int):
    if row is None or idx >= len(row):
        return None
    return row[idx]
