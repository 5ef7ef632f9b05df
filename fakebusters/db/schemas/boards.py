import uuid
from datetime import datetime
from typing import Annotated, Optional
from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict

from fakebusters.utils.roles import BoardRole, parse_role


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("can't be blank")
    return value


def _coerce_role(value):
    if value is None or isinstance(value, BoardRole):
        return value
    return parse_role(value)


RequiredText = Annotated[str, AfterValidator(_not_blank)]
Role = Annotated[BoardRole, BeforeValidator(_coerce_role)]


class BoardBase(BaseModel):
    description: RequiredText
    fact: RequiredText
    phase: int
    rules: RequiredText
    verdict_falsy: int
    verdict_truthy: int


class BoardCreate(BoardBase):
    pass


class Board(BoardBase):
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class BoardMemberBase(BaseModel):
    role: Role
    user_id: Optional[uuid.UUID] = None
    board_id: Optional[uuid.UUID] = None


class BoardMemberCreate(BoardMemberBase):
    pass


class JoinRequestBase(BaseModel):
    motivation: RequiredText
    preferred_role: Role
    user_id: Optional[uuid.UUID] = None
    board_id: Optional[uuid.UUID] = None


class JoinRequestCreate(JoinRequestBase):
    pass


class JoinRequestUpdate(BaseModel):
    motivation: Optional[str] = None
    preferred_role: Optional[Role] = None


class JoinRequestApproval(BaseModel):
    """Membership to grant when approving the request of user_id on board_id."""
    user_id: uuid.UUID
    board_id: uuid.UUID
    role: Role
