from pydantic import BaseModel, Field
from typing import Annotated, Optional, List, Dict, Union, Literal


class ScriptureResult(BaseModel):
    """A looked-up passage as shown in the transcript"""
    id: str
    reference: str
    content: str


class Verse(BaseModel):
    number: int
    text: str


class Passage(BaseModel):
    """Verses returned by the lookup service for one passage"""
    reference: str
    translation: str = ""
    verses: List[Verse]

    @property
    def verse_text(self) -> str:
        """Flat verse text used for commentary generation"""
        return " ".join(v.text.strip() for v in self.verses)

    @property
    def formatted_content(self) -> str:
        return "".join(
            f"<p><strong>{v.number}</strong> {v.text.strip()}</p>" for v in self.verses
        )

    def to_result(self) -> ScriptureResult:
        return ScriptureResult(
            id=self.reference,
            reference=self.reference,
            content=self.formatted_content,
        )


class UserTurn(BaseModel):
    """Message typed by the user"""
    type: Literal["user"] = "user"
    text: str


class BotTurn(BaseModel):
    """Response to a user turn: scripture + commentary, free text, or an error"""
    type: Literal["bot"] = "bot"
    results: List[ScriptureResult] = Field(default_factory=list)
    text: Optional[str] = None
    error: Optional[str] = None
    commentary: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


ChatMessage = Annotated[Union[UserTurn, BotTurn], Field(discriminator="type")]


class StoredMessage(BaseModel):
    """Transcript entry as persisted by the store"""
    id: str
    session_id: str
    timestamp: float
    message: ChatMessage


class HistoryEntry(BaseModel):
    """Raw query recorded in the search history log"""
    id: str
    text: str
    user_id: str
    timestamp: float


class CommentatorResolution(BaseModel):
    """Outcome of matching a commentator name against the allow-list"""
    outcome: Literal["matched", "rejected", "absent"]
    name: str = ""
    status_message: str

    @property
    def is_matched(self) -> bool:
        return self.outcome == "matched"


class SendMessageRequest(BaseModel):
    """Chat message from user"""
    message: str = Field(..., min_length=1, max_length=1000)
    user_id: str = Field(..., min_length=1, max_length=128)
    session_id: Optional[str] = Field(None, max_length=128)


class TurnResponse(BaseModel):
    """Result of one chat turn"""
    session_id: str
    user_message: StoredMessage
    bot_message: Optional[StoredMessage] = None
    statuses: List[str] = Field(default_factory=list)
    discarded: bool = False


class NewSessionRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=128)


class SessionResponse(BaseModel):
    session_id: str
    user_id: str


class TranscriptResponse(BaseModel):
    session_id: str
    messages: List[StoredMessage]


class HistoryResponse(BaseModel):
    user_id: str
    entries: List[HistoryEntry]


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    timestamp: str
    services: Dict[str, Union[bool, str]]
