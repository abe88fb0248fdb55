import json

import pandas as pd
import pytest

from emoji_cache.dataset import (
    load_records,
    normalize_dataset_df,
    parse_keywords,
    records_from_df,
)


def test_parse_keywords_variants():
    assert parse_keywords("love | heart;valentine") == ["love", "heart", "valentine"]
    assert parse_keywords(["space", " launch ", "space"]) == ["space", "launch"]
    assert parse_keywords('["a", "b"]') == ["a", "b"]
    assert parse_keywords(None) == []
    assert parse_keywords(float("nan")) == []


def test_normalize_dataset_standardizes_columns():
    raw = pd.DataFrame(
        {
            "Emoji": ["🚀", "❤️"],
            "Name": ["  rocket ", "red heart"],
            "Group": ["Travel & Places", "Smileys & Emotion"],
            "Tags": ["space|launch", "love"],
        }
    )
    df = normalize_dataset_df(raw)

    assert list(df.columns) == ["character", "name", "category", "keywords"]
    row = df.iloc[0]
    assert row["character"] == "🚀"
    assert row["name"] == "rocket"
    assert row["category"] == "Travel & Places"
    assert row["keywords"] == ["space", "launch"]


def test_missing_fields_are_kept_for_index_build():
    raw = pd.DataFrame({"emoji": ["", "🔥"], "name": ["ghost", None]})
    records = records_from_df(normalize_dataset_df(raw))

    assert [r.id for r in records] == [0, 1]
    assert records[0].character == ""
    assert records[1].name == ""
    assert records[1].category == ""
    assert records[1].keywords == ()


def test_load_records_from_csv(tmp_path):
    path = tmp_path / "emoji.csv"
    pd.DataFrame(
        {"character": ["⭐"], "name": ["star"], "category": ["Travel & Places"], "keywords": ["night,favorite"]}
    ).to_csv(path, index=False)

    records = load_records(path)
    assert len(records) == 1
    assert records[0].keywords == ("night", "favorite")


def test_load_records_from_json(tmp_path):
    path = tmp_path / "emoji.json"
    path.write_text(
        json.dumps([{"emoji": "👍", "name": "thumbs up", "category": "People & Body", "keywords": ["+1", "like"]}]),
        encoding="utf-8",
    )
    records = load_records(path)
    assert records[0].character == "👍"
    assert records[0].keywords == ("+1", "like")


def test_load_records_rejects_unknown_format(tmp_path):
    path = tmp_path / "emoji.xml"
    path.write_text("<emoji/>", encoding="utf-8")
    with pytest.raises(ValueError):
        load_records(path)


def test_load_records_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_records(tmp_path / "nope.csv")
