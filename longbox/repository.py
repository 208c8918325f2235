"""Catalog store for Longbox.

``CatalogStore`` owns all durable state: issues, their pages, per-user read
marks and reader accounts. It is built once around the engine's bounded
connection pool and shared by the scanner thread and the request handlers.
Every public method borrows one connection for its own duration only.
"""

from __future__ import annotations

import datetime
from contextlib import contextmanager
from typing import Iterator, List, NamedTuple, Optional, Sequence, Set, Tuple

from sqlalchemy import delete, func, text
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from .archive import read_entry
from .auth import derive_password_hash, new_salt, verify_password
from .errors import NoSuchPage, StoreError
from .logging_config import get_logger
from .models import Issue, IssueBase, Page, ReadMark, User
from .pages import completes_issue, page_sequence

logger = get_logger(__name__)

# Returned by verify_or_create_user on a wrong password. Never a valid user id.
AUTH_MISMATCH = 0

# Group key used when the grouped field is NULL
NONE_KEY = "None"


class IssueRecord(IssueBase):
    """Read-only projection of one issue row."""

    id: int


class GroupEntry(NamedTuple):
    key: str
    modified_at: datetime.datetime


def _to_issue_record(issue: Issue) -> IssueRecord:
    return IssueRecord(**issue.model_dump())


def _to_group_entry(row) -> GroupEntry:
    key, modified_at = row
    return GroupEntry(key=key, modified_at=modified_at)


def _fts_query(terms: str) -> str:
    """Quote each whitespace-separated term so user input is never FTS syntax."""
    return " ".join('"' + term.replace('"', '""') + '"' for term in terms.split())


class CatalogStore:
    def __init__(self, engine: Engine):
        self.engine = engine

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Session on one pooled connection; database errors become StoreError."""
        try:
            with Session(self.engine, expire_on_commit=False) as session:
                yield session
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    # --- Write path (scanner) ---

    def upsert_issue(
        self,
        issue: IssueBase,
        page_entries: Optional[Sequence[str]] = None,
        comicinfo: Optional[str] = None,
    ) -> int:
        """Insert or overwrite the issue keyed by filepath and return its id.

        When ``page_entries`` is given, the issue's pages are replaced by
        exactly that list. When ``comicinfo`` is given, the full-text row is
        replaced too. Everything happens in one transaction.
        """
        values = {field: getattr(issue, field) for field in IssueBase.model_fields}
        stmt = sqlite_insert(Issue.__table__).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["filepath"],
            set_={key: stmt.excluded[key] for key in values if key != "filepath"},
        )

        with self._session() as session:
            session.exec(stmt)
            # The conflict path doesn't report a lastrowid, so look it up
            issue_id = session.exec(
                select(Issue.id).where(Issue.filepath == issue.filepath)
            ).one()

            if page_entries is not None:
                session.exec(delete(Page).where(Page.issue_id == issue_id))
                # Zip allows duplicate names; keep the first occurrence
                names = list(dict.fromkeys(page_entries))
                if names:
                    session.exec(
                        sqlite_insert(Page.__table__),
                        params=[{"issue_id": issue_id, "name": name} for name in names],
                    )

            if comicinfo is not None:
                session.exec(
                    text("DELETE FROM issue_fts WHERE rowid = :issue_id"),
                    params={"issue_id": issue_id},
                )
                session.exec(
                    text("INSERT INTO issue_fts(rowid, comicinfo) VALUES (:issue_id, :doc)"),
                    params={"issue_id": issue_id, "doc": comicinfo},
                )

            session.commit()
        return issue_id

    def needs_reindex(self, filepath: str, observed_mtime: datetime.datetime) -> bool:
        """True if the file is unknown or its stored mtime is older.

        A store failure also answers True so new content is never skipped.
        """
        try:
            with self._session() as session:
                stored = session.exec(
                    select(Issue.modified_at).where(Issue.filepath == filepath)
                ).first()
        except StoreError as exc:
            logger.warning(f"Reindexing {filepath}, store lookup failed: {exc}")
            return True
        return stored is None or stored < observed_mtime

    def analyze(self) -> None:
        """Refresh SQLite's query planner statistics."""
        with self._session() as session:
            session.exec(text("ANALYZE"))
            session.commit()

    # --- Queries ---

    def all(self) -> List[IssueRecord]:
        with self._session() as session:
            issues = session.exec(select(Issue).order_by(Issue.filepath)).all()
            return [_to_issue_record(i) for i in issues]

    def recent(self, limit: int = 50) -> List[IssueRecord]:
        with self._session() as session:
            issues = session.exec(
                select(Issue).order_by(Issue.modified_at.desc()).limit(limit)
            ).all()
            return [_to_issue_record(i) for i in issues]

    def get(self, issue_id: int) -> Optional[IssueRecord]:
        with self._session() as session:
            issue = session.get(Issue, issue_id)
            return _to_issue_record(issue) if issue else None

    def unread(self, user_id: int) -> List[IssueRecord]:
        """Issues without a read mark for this user, newest first."""
        with self._session() as session:
            issues = session.exec(
                select(Issue)
                .where(Issue.id.not_in(self._read_ids_subquery(user_id)))
                .order_by(Issue.modified_at.desc())
            ).all()
            return [_to_issue_record(i) for i in issues]

    def unread_grouped_by_series(self, user_id: int) -> List[GroupEntry]:
        series_key = func.coalesce(Issue.series, NONE_KEY)
        with self._session() as session:
            rows = session.exec(
                select(series_key, func.max(Issue.modified_at))
                .where(Issue.id.not_in(self._read_ids_subquery(user_id)))
                .group_by(series_key)
                .order_by(series_key)
            ).all()
            return [_to_group_entry(row) for row in rows]

    def by_publisher(self) -> List[GroupEntry]:
        publisher_key = func.coalesce(Issue.publisher, NONE_KEY)
        with self._session() as session:
            rows = session.exec(
                select(publisher_key, func.max(Issue.modified_at))
                .group_by(publisher_key)
                .order_by(publisher_key)
            ).all()
            return [_to_group_entry(row) for row in rows]

    def series_for_publisher(self, publisher: str) -> List[GroupEntry]:
        """Series of one publisher; pass "None" for issues without a publisher."""
        series_key = func.coalesce(Issue.series, NONE_KEY)
        with self._session() as session:
            rows = session.exec(
                select(series_key, func.max(Issue.modified_at))
                .where(func.coalesce(Issue.publisher, NONE_KEY) == publisher)
                .group_by(series_key)
                .order_by(series_key)
            ).all()
            return [_to_group_entry(row) for row in rows]

    def issues_for_publisher_series(self, publisher: str, series: str) -> List[IssueRecord]:
        with self._session() as session:
            issues = session.exec(
                select(Issue)
                .where(func.coalesce(Issue.publisher, NONE_KEY) == publisher)
                .where(func.coalesce(Issue.series, NONE_KEY) == series)
                .order_by(Issue.volume, Issue.issue_number, Issue.filepath)
            ).all()
            return [_to_issue_record(i) for i in issues]

    def search(self, terms: str, limit: int = 50) -> List[IssueRecord]:
        """Full-text search over the stored ComicInfo documents, best match first."""
        query = _fts_query(terms)
        if not query:
            return []
        with self._session() as session:
            ids = session.exec(
                text(
                    "SELECT rowid FROM issue_fts WHERE issue_fts MATCH :query "
                    "ORDER BY rank LIMIT :limit"
                ),
                params={"query": query, "limit": limit},
            ).scalars().all()
            if not ids:
                return []
            issues = session.exec(select(Issue).where(Issue.id.in_(ids))).all()
            by_id = {i.id: i for i in issues}
            return [_to_issue_record(by_id[i]) for i in ids if i in by_id]

    def pages(self, issue_id: int) -> List[str]:
        """The page sequence readers see for this issue."""
        with self._session() as session:
            names = session.exec(
                select(Page.name).where(Page.issue_id == issue_id).order_by(Page.name)
            ).all()
        return page_sequence(names)

    # --- Read marks ---

    @staticmethod
    def _read_ids_subquery(user_id: int):
        return select(ReadMark.issue_id).where(ReadMark.user_id == user_id)

    def mark_read(self, issue_id: int, user_id: int) -> bool:
        """Record that the user has read the issue (now). Failures are logged, not raised."""
        stmt = sqlite_insert(ReadMark.__table__).values(
            user_id=user_id,
            issue_id=issue_id,
            read_at=datetime.datetime.now(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "issue_id"],
            set_={"read_at": stmt.excluded.read_at},
        )
        try:
            with self._session() as session:
                session.exec(stmt)
                session.commit()
        except StoreError as exc:
            logger.warning(f"Could not mark issue {issue_id} read for user {user_id}: {exc}")
            return False
        return True

    def read_issue_ids(self, user_id: int) -> Set[int]:
        with self._session() as session:
            return set(session.exec(self._read_ids_subquery(user_id)).all())

    # --- Page delivery ---

    def get_page(self, issue_id: int, page_index: int, user_id: int) -> Tuple[str, bytes]:
        """Return (entry name, bytes) of a zero-based page.

        Requesting one of the last two pages marks the issue read for the user.
        Raises NoSuchPage for an unknown issue or an out-of-range index.
        """
        with self._session() as session:
            filepath = session.exec(
                select(Issue.filepath).where(Issue.id == issue_id)
            ).first()
        if filepath is None:
            raise NoSuchPage(f"No issue {issue_id}")

        sequence = self.pages(issue_id)
        if page_index < 0 or page_index >= len(sequence):
            raise NoSuchPage(
                f"Issue {issue_id} has {len(sequence)} pages, requested {page_index}"
            )

        if completes_issue(page_index, len(sequence)):
            self.mark_read(issue_id, user_id)

        name = sequence[page_index]
        return name, read_entry(filepath, name)

    # --- Users ---

    def get_user(self, username: str) -> Optional[int]:
        with self._session() as session:
            return session.exec(select(User.id).where(User.username == username)).first()

    def verify_or_create_user(self, username: str, secret: str) -> int:
        """Authenticate, provisioning the account on first sight of a username.

        Returns the user id, or AUTH_MISMATCH when the password is wrong.
        """
        with self._session() as session:
            user = session.exec(select(User).where(User.username == username)).first()
            if user is not None:
                if verify_password(secret, user.salt, user.password_hash):
                    return user.id
                return AUTH_MISMATCH

            salt = new_salt()
            user = User(
                username=username,
                salt=salt,
                password_hash=derive_password_hash(secret, salt),
            )
            session.add(user)
            try:
                session.commit()
            except IntegrityError:
                # Lost a race with a concurrent first login for the same name
                session.rollback()
                user = session.exec(select(User).where(User.username == username)).one()
                if verify_password(secret, user.salt, user.password_hash):
                    return user.id
                return AUTH_MISMATCH

            logger.info(f"Created reader account {username!r}")
            return user.id

    # --- Maintenance ---

    def stats(self) -> dict:
        """Counts for the CLI ``stats`` command."""
        with self._session() as session:
            issues = session.exec(select(func.count()).select_from(Issue)).one()
            pages = session.exec(select(func.count()).select_from(Page)).one()
            users = session.exec(select(func.count()).select_from(User)).one()
            total_size = session.exec(select(func.coalesce(func.sum(Issue.size), 0))).one()
        return {"issues": issues, "pages": pages, "users": users, "total_size": total_size}
