import uuid
from sqlalchemy import Column, Text, Integer, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .base import Base, now_utc


class Board(Base):
    __tablename__ = 'boards'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    description = Column(Text, nullable=False)
    fact = Column(Text, nullable=False)
    phase = Column(Integer, nullable=False)
    rules = Column(Text, nullable=False)
    verdict_falsy = Column(Integer, nullable=False)
    verdict_truthy = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    members = relationship("BoardMember", back_populates="board", cascade="all, delete-orphan")
    join_requests = relationship("JoinRequest", back_populates="board", cascade="all, delete-orphan")


class BoardMember(Base):
    __tablename__ = 'board_members'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    role = Column(Integer, nullable=False)  # BoardRole value; 0 is the judge
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    board_id = Column(UUID(as_uuid=True), ForeignKey('boards.id', ondelete='CASCADE'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    board = relationship("Board", back_populates="members")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint('board_id', 'user_id', name='uq_board_members_board_user'),
        Index('idx_board_members_user_id', 'user_id'),
    )


class JoinRequest(Base):
    __tablename__ = 'join_requests'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    motivation = Column(Text, nullable=False)
    preferred_role = Column(Integer, nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    board_id = Column(UUID(as_uuid=True), ForeignKey('boards.id', ondelete='CASCADE'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    board = relationship("Board", back_populates="join_requests")

    __table_args__ = (
        UniqueConstraint('board_id', 'user_id', name='uq_join_requests_board_user'),
        Index('ix_join_requests_board_id_created_at', 'board_id', 'created_at'),
    )
