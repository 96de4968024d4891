"""Shared pytest fixtures for storyloom tests."""

from typing import Callable

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storyloom.core.timing import format_number, segment_ranges
from storyloom.db.schema import Base
from storyloom.models.types import StoryboardRequest


@pytest.fixture
def engine():
    """Create an in-memory SQLite engine shared across sessions."""
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def session_factory(engine):
    """Session factory bound to the in-memory engine."""
    return sessionmaker(bind=engine)


@pytest.fixture
def session(session_factory):
    """Create a database session for testing."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storyboard_request() -> StoryboardRequest:
    """A valid English JSON-mode request for 4 scenes over 10 seconds."""
    return StoryboardRequest(
        duration_sec=10,
        scene_count=4,
        style="noir",
        idea="A courier races a storm across a neon city",
        language="en",
    )


@pytest.fixture
def make_template() -> Callable[..., str]:
    """Factory for detailed template texts.

    Defaults produce a compliant document for 4 shots over 10 seconds with
    'auto' left on the style and bgm lines.
    """

    def _make(
        shots: int = 4,
        duration: float = 10.0,
        header: str | None = None,
        sections: tuple[str, ...] = (
            "LOGLINE",
            "VISUAL GRAMMAR",
            "PHYSICS & CONTINUITY",
            "AUDIO",
            "CONSTRAINTS",
        ),
        prefix_lines: tuple[str, ...] = (),
        style_value: str = "auto",
        bgm_value: str = "auto",
    ) -> str:
        shot_lines = [
            f"{format_number(start)}–{format_number(end)}s — shot {i + 1} / slow push / courier moves"
            for i, (start, end) in enumerate(segment_ranges(duration, max(shots, 1)))
        ][:shots]
        blocks = {
            "LOGLINE": ["LOGLINE", "A courier races a storm across a neon city."],
            "VISUAL GRAMMAR": [
                "VISUAL GRAMMAR",
                f"style: {style_value}",
                "lighting: neon backlight",
                "lens: 35mm",
                "grade/texture: film grain",
            ],
            "PHYSICS & CONTINUITY": ["PHYSICS & CONTINUITY", "Rain streaks follow the wind."],
            "AUDIO": [
                "AUDIO",
                f"bgm: {bgm_value}",
                "sfx: rain, engine hum",
                'dialogue: "(none)" (lip-sync off)',
            ],
            "CONSTRAINTS": [
                "CONSTRAINTS",
                "no subtitles, no on-screen text, no logos, stable character design",
            ],
        }
        lines = list(prefix_lines)
        if "LOGLINE" in sections:
            lines += blocks["LOGLINE"] + [""]
        lines.append(header if header is not None else f"SHOT LIST ({shots} shots / {duration:.2f}s)")
        lines += shot_lines + [""]
        for name in ("VISUAL GRAMMAR", "PHYSICS & CONTINUITY", "AUDIO", "CONSTRAINTS"):
            if name in sections:
                lines += blocks[name] + [""]
        return "\n".join(lines).strip()

    return _make
