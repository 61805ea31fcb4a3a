"""Real-time envelope exchanged over the WebSocket."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WsEnvelope(BaseModel):
    """``{type, data, roomId?, groupId?}`` frame in both directions."""

    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(..., min_length=1)
    data: Any = None
    room_id: str | int | None = Field(None, alias="roomId")
    group_id: int | None = Field(None, alias="groupId")

    def to_wire(self) -> str:
        """Serialize once for fan-out."""
        return self.model_dump_json(by_alias=True, exclude_none=True)
