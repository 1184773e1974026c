"""
Pydantic schemas for request bodies accepted by the note server.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator


class PlayNoteRequest(BaseModel):
    """Body of ``POST /playnote``.

    ``note`` must be a non-empty string. Letters outside C..B are still
    accepted; the server acknowledges them without playing anything.
    """

    model_config = ConfigDict(extra="ignore")

    note: str = Field(..., min_length=1, description="Note letter, e.g. 'C'")

    @field_validator('note', mode='before')
    @classmethod
    def require_string(cls, v):
        """Reject numbers and other JSON types instead of coercing them."""
        if not isinstance(v, str):
            raise ValueError("Note parameter is required and must be a string")
        return v
