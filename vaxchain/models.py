"""
Wire models for vaxchain.

Hex-encoded forms of chain cursors and action submissions, for transport and
persistence. The chain secret never appears in any of them.
"""

from pydantic import BaseModel, Field, field_validator

from .chain import ChainCursor
from .util import MAX_COUNTER, from_hex, to_hex
from .verifier import ActionSubmission

HEX_ANCHOR_PATTERN = r'^[0-9a-fA-F]{64}$'


class ChainCursorModel(BaseModel):
    counter: int = Field(ge=0, le=MAX_COUNTER)
    anchor: str = Field(pattern=HEX_ANCHOR_PATTERN)

    @field_validator("anchor")
    @classmethod
    def normalize_anchor(cls, v: str) -> str:
        return v.lower()

    def to_cursor(self) -> ChainCursor:
        return ChainCursor(counter=self.counter, anchor=from_hex(self.anchor, 32, "anchor"))

    @classmethod
    def from_cursor(cls, cursor: ChainCursor) -> "ChainCursorModel":
        return cls(counter=cursor.counter, anchor=to_hex(cursor.anchor))


class ActionSubmissionModel(BaseModel):
    """
    One action as an actor submits it to a verifier.

    ``payload`` is the canonical SAE as text; it is verified as its UTF-8
    bytes, so it must be transported unchanged.
    """
    counter: int = Field(ge=0, le=MAX_COUNTER)
    prev_anchor: str = Field(pattern=HEX_ANCHOR_PATTERN)
    payload: str = Field(min_length=1)
    anchor: str = Field(pattern=HEX_ANCHOR_PATTERN)

    @field_validator("prev_anchor", "anchor")
    @classmethod
    def normalize_hex(cls, v: str) -> str:
        return v.lower()

    def to_submission(self) -> ActionSubmission:
        return ActionSubmission(
            counter=self.counter,
            prev_anchor=from_hex(self.prev_anchor, 32, "prev_anchor"),
            payload=self.payload.encode("utf-8"),
            anchor=from_hex(self.anchor, 32, "anchor"),
        )

    @classmethod
    def from_submission(cls, submission: ActionSubmission) -> "ActionSubmissionModel":
        """
        Build the wire form of a submission.

        Raises:
            UnicodeDecodeError: If the payload is not UTF-8
        """
        return cls(
            counter=submission.counter,
            prev_anchor=to_hex(submission.prev_anchor),
            payload=bytes(submission.payload).decode("utf-8"),
            anchor=to_hex(submission.anchor),
        )
