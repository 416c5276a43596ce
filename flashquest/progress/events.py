"""
Study events sent by the front-end, and the notifications sent back.
"""
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Event(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CompleteCard(_Event):
    kind: Literal["complete_card"] = "complete_card"
    topic: str
    card_index: int


class Tick(_Event):
    """Session timer tick; `seconds` elapsed since the previous tick."""
    kind: Literal["tick"] = "tick"
    seconds: int = 1


class DailyReset(_Event):
    kind: Literal["daily_reset"] = "daily_reset"


class StartSession(_Event):
    kind: Literal["start_session"] = "start_session"


StudyEvent = Annotated[
    Union[CompleteCard, Tick, DailyReset, StartSession],
    Field(discriminator="kind"),
]


class Notification(BaseModel):
    kind: Literal["points", "levelup", "streak", "challenge", "achievement"]
    message: str
    amount: Optional[int] = None
