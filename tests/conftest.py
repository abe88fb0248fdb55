import json

import pytest

from emoji_cache.config import Record


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_records():
    rows = [
        ("🚀", "rocket", "Travel & Places", ["space", "launch", "ship"]),
        ("❤️", "red heart", "Smileys & Emotion", ["love", "heart"]),
        ("💔", "broken heart", "Smileys & Emotion", ["sad", "breakup"]),
        ("😀", "grinning face", "Smileys & Emotion", ["smile", "happy"]),
        ("👍", "thumbs up", "People & Body", ["+1", "approve", "like"]),
        ("🔥", "fire", "Travel & Places", ["flame", "hot", "lit"]),
        ("⭐", "star", "Travel & Places", ["night", "favorite"]),
    ]
    return [
        Record(id=i, character=c, name=n, category=cat, keywords=tuple(kws))
        for i, (c, n, cat, kws) in enumerate(rows)
    ]


@pytest.fixture
def records():
    return make_records()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def collection_file(tmp_path):
    path = tmp_path / "collections.json"
    path.write_text(
        json.dumps(
            {
                "collections": {
                    "favorites": {"description": "daily use", "emojis": ["🚀", "❤️", "🔥"]},
                    "moods": {"emojis": ["😀", "broken heart"]},
                }
            }
        ),
        encoding="utf-8",
    )
    return path
