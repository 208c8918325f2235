"""SQLModel database models for Longbox."""

import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class IssueBase(SQLModel):
    filepath: str = Field(unique=True, index=True)
    modified_at: datetime.datetime
    size: int = 0
    comicvine_id: Optional[int] = None
    comicvine_url: Optional[str] = None
    series: Optional[str] = Field(default=None, index=True)
    issue_number: Optional[int] = None
    volume: Optional[int] = None
    title: Optional[str] = None
    summary: Optional[str] = None
    released_at: Optional[datetime.date] = None
    writer: Optional[str] = None
    penciller: Optional[str] = None
    inker: Optional[str] = None
    colorist: Optional[str] = None
    cover_artist: Optional[str] = None
    publisher: Optional[str] = Field(default=None, index=True)
    page_count: Optional[int] = None


class Issue(IssueBase, table=True):
    __tablename__ = "issue"
    id: Optional[int] = Field(default=None, primary_key=True)


class Page(SQLModel, table=True):
    __tablename__ = "page"
    __table_args__ = (UniqueConstraint("issue_id", "name", name="uq_page_issue_name"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    issue_id: int = Field(foreign_key="issue.id", index=True)
    name: str


class User(SQLModel, table=True):
    __tablename__ = "user_account"
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(unique=True, index=True)
    salt: bytes
    password_hash: bytes


class ReadMark(SQLModel, table=True):
    __tablename__ = "read_mark"
    __table_args__ = (UniqueConstraint("user_id", "issue_id", name="uq_read_mark_user_issue"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user_account.id")
    issue_id: int = Field(foreign_key="issue.id", index=True)
    read_at: datetime.datetime
