from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
from loguru import logger

from .config import DATASET_PATH, Record
from .normalize import basic_clean


# ---------------------------
# Column detection / standardization
# ---------------------------

# Emoji tables come from several exporters, so we accept the common variants.
COLUMN_CANDIDATES: Dict[str, List[str]] = {
    "character": [
        "character",
        "emoji",
        "Emoji",
        "char",
        "Char",
        "symbol",
    ],
    "name": [
        "name",
        "Name",
        "cldr_name",
        "annotation",
        "description",
        "Description",
    ],
    "category": [
        "category",
        "Category",
        "group",
        "Group",
    ],
    "keywords_raw": [
        "keywords",
        "Keywords",
        "tags",
        "Tags",
        "aliases",
    ],
}

CANONICAL_COLUMNS = ["character", "name", "category", "keywords"]

_KEYWORD_SPLIT_RE = re.compile(r"[|;,]+")


def _standardize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Rename columns from a raw emoji table to the canonical internal schema.
    """
    col_map: Dict[str, str] = {}
    lower_to_original = {str(c).lower(): c for c in df.columns}

    for canon, candidates in COLUMN_CANDIDATES.items():
        for candidate in candidates:
            # Try exact, then case-insensitive
            if candidate in df.columns:
                col_map[candidate] = canon
                break
            cand_lower = candidate.lower()
            if cand_lower in lower_to_original:
                col_map[lower_to_original[cand_lower]] = canon
                break

    logger.info("Standardizing columns with map: {}", col_map)
    df_std = df.rename(columns=col_map)

    missing = [c for c in ("character", "name") if c not in df_std.columns]
    if missing:
        logger.warning("Raw dataset is missing required columns: {}", missing)
    return df_std


# ---------------------------
# Field parsing helpers
# ---------------------------

def _is_missing(value) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and pd.isna(value):
        return True
    return False


def parse_keywords(value) -> List[str]:
    """
    Parse a raw keyword field into a list of cleaned keywords.

    Accepts lists (as found in JSON exports), JSON-encoded list strings, and
    ``|``/``;``/``,``-separated strings. Duplicates are dropped, order kept.
    """
    if _is_missing(value):
        return []

    if isinstance(value, (list, tuple)):
        parts = [str(v) for v in value]
    else:
        text = str(value).strip()
        parts = []
        if text.startswith("["):
            try:
                decoded = json.loads(text)
                if isinstance(decoded, list):
                    parts = [str(v) for v in decoded]
            except json.JSONDecodeError:
                parts = []
        if not parts:
            parts = _KEYWORD_SPLIT_RE.split(text)

    keywords: List[str] = []
    for part in parts:
        kw = basic_clean(part)
        if kw and kw not in keywords:
            keywords.append(kw)
    return keywords


# ---------------------------
# Dataset normalization
# ---------------------------

def normalize_dataset_df(df_raw: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize a raw emoji table to the canonical schema:

    - character (str)
    - name (str)
    - category (str)
    - keywords (List[str])

    Rows with a missing character or name are kept so the index builder can
    report them as data-quality issues.
    """
    logger.info("Normalizing dataset with {} raw rows", len(df_raw))
    df = _standardize_columns(df_raw.copy())

    for col in ("character", "name", "category"):
        if col in df.columns:
            df[col] = df[col].apply(lambda v: "" if _is_missing(v) else basic_clean(v))
        else:
            df[col] = ""

    if "keywords_raw" in df.columns:
        df["keywords"] = df["keywords_raw"].apply(parse_keywords)
    else:
        df["keywords"] = [[] for _ in range(len(df))]

    df_out = df[CANONICAL_COLUMNS].reset_index(drop=True)
    logger.info("Dataset normalization complete. Final rows: {}", len(df_out))
    return df_out


def records_from_df(df: pd.DataFrame) -> List[Record]:
    """Turn a normalized dataset frame into records with positional ids."""
    records: List[Record] = []
    for pos, row in enumerate(df.itertuples(index=False)):
        records.append(
            Record(
                id=pos,
                character=row.character,
                name=row.name,
                category=row.category,
                keywords=tuple(row.keywords),
            )
        )
    return records


# ---------------------------
# IO helpers
# ---------------------------

def load_raw_dataset(path: Path) -> pd.DataFrame:
    """
    Load a raw emoji table from CSV or JSON (records-oriented or line-delimited).
    """
    suffix = path.suffix.lower()
    logger.info("Loading raw dataset from {}", path)
    if suffix == ".csv":
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    elif suffix == ".json":
        df = pd.read_json(path, orient="records", dtype=False)
    elif suffix in (".jsonl", ".ndjson"):
        df = pd.read_json(path, lines=True, dtype=False)
    else:
        raise ValueError(f"Unsupported dataset format: {path.suffix or path.name}")
    logger.info("Loaded {} rows from raw dataset", len(df))
    return df


def load_records(path: Optional[Path] = None) -> List[Record]:
    """
    End-to-end: load raw dataset -> normalize -> records.
    """
    path = Path(path) if path is not None else DATASET_PATH
    if not path.exists():
        raise FileNotFoundError(f"Emoji dataset not found at {path}.")
    return records_from_df(normalize_dataset_df(load_raw_dataset(path)))
