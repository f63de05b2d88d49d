"""Upstream item records and the projected best story record.

RawItem mirrors the upstream item JSON. BestStory is the immutable public
result; it is produced only from items whose type is "story".
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_serializer, field_validator
from pydantic.alias_generators import to_camel

STORY_TYPE = "story"


class RawItem(BaseModel):
    """Raw upstream item. Unknown fields are ignored, any field may be missing or null."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    type: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None
    by: Optional[str] = None
    time: int = 0
    score: int = 0
    descendants: int = 0

    @field_validator("time", "score", "descendants", mode="before")
    @classmethod
    def null_as_zero(cls, v):
        return 0 if v is None else v


class BestStory(BaseModel):
    """A story as returned to callers.

    Serialised in camelCase (``postedBy``, ``commentCount``) with ``time`` as
    an ISO-8601 UTC timestamp.

    Attributes:
        title: Story title, empty if absent upstream
        uri: Story URL, empty if absent upstream (self posts)
        posted_by: Author username, empty if absent upstream
        time: Submission time in UTC
        score: Story score
        comment_count: Total comment count
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    title: str
    uri: str
    posted_by: str
    time: datetime
    score: int
    comment_count: int

    @field_serializer("time", when_used="json")
    def serialize_time(self, value: datetime) -> str:
        return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    def to_json(self) -> dict:
        """Dump to the JSON shape exposed over HTTP."""
        return self.model_dump(mode="json", by_alias=True)


def to_best_story(item: Optional[RawItem]) -> Optional[BestStory]:
    """Project a raw item onto a BestStory.

    Args:
        item: Raw upstream item, or None when the item does not exist

    Returns:
        BestStory for story items (type compared case-insensitively),
        None for every other item type and for missing items
    """
    if item is None or item.type is None or item.type.lower() != STORY_TYPE:
        return None

    return BestStory(
        title=item.title or "",
        uri=item.url or "",
        posted_by=item.by or "",
        time=datetime.fromtimestamp(item.time, tz=timezone.utc),
        score=item.score,
        comment_count=item.descendants,
    )
