import builtins
import json
import sqlite3
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from src.core.ports.db import ArticleFilter, DuplicateVersionError
from src.domain.entities import (
    Article,
    ArticleImage,
    ArticleStats,
    ArticleStatus,
    ArticleVersion,
)

# Columns update_fields() may touch; status goes through CAS / mark_published only
UPDATABLE_ARTICLE_COLUMNS = ("title", "content", "tags", "category")


# Helper to convert sqlite rows to dicts
def dict_factory(cursor: sqlite3.Cursor, row: Any) -> dict[str, Any]:
    d = {}
    for idx, col in enumerate(cursor.description):
        d[col[0]] = row[idx]
    return d


def _icontains(haystack: str | None, needle: str | None) -> int:
    """Case-insensitive substring test registered as a SQL function."""
    if haystack is None or needle is None:
        return 0
    return int(needle.casefold() in haystack.casefold())


def format_dt(value: datetime) -> str:
    # Fixed-width UTC ISO strings so lexical order == chronological order
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def parse_dt(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _article_update_sql(
    article_id: UUID, fields: dict[str, Any], updated_at: datetime
) -> tuple[str, list[Any]]:
    """UPDATE statement for the given editable columns plus updated_at."""
    assignments: list[str] = []
    params: list[Any] = []
    for column in UPDATABLE_ARTICLE_COLUMNS:
        if column not in fields:
            continue
        value = fields[column]
        if column == "tags":
            value = json.dumps(list(value or []))
        assignments.append(f"{column} = ?")
        params.append(value)

    assignments.append("updated_at = ?")
    params.append(format_dt(updated_at))
    params.append(str(article_id))
    return f"UPDATE articles SET {', '.join(assignments)} WHERE id = ?", params


class _SQLiteRepo:
    def __init__(self, db_path: str, *, busy_timeout: float = 30.0):
        self.db_path = db_path
        self.busy_timeout = busy_timeout

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout)
        conn.row_factory = dict_factory
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.create_function("icontains", 2, _icontains, deterministic=True)
        return conn


# -----------------------------------------------------------------------------
# Articles
# -----------------------------------------------------------------------------


class SQLiteArticleRepo(_SQLiteRepo):
    @staticmethod
    def _row_to_article(row: dict[str, Any]) -> Article:
        return Article(
            id=UUID(row["id"]),
            title=row["title"],
            content=row["content"],
            status=row["status"],
            tags=json.loads(row["tags"] or "[]"),
            category=row["category"],
            xhs_note_id=row["xhs_note_id"],
            created_at=parse_dt(row["created_at"]),
            updated_at=parse_dt(row["updated_at"]),
        )

    def get_by_id(self, article_id: UUID) -> Article | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM articles WHERE id = ?", (str(article_id),)
            ).fetchone()
            return self._row_to_article(row) if row else None
        finally:
            conn.close()

    def insert(self, article: Article) -> Article:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO articles (
                    id, title, content, status, tags, category,
                    xhs_note_id, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    str(article.id),
                    article.title,
                    article.content,
                    article.status,
                    json.dumps(article.tags),
                    article.category,
                    article.xhs_note_id,
                    format_dt(article.created_at),
                    format_dt(article.updated_at),
                ),
            )
            conn.commit()
            return article
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def update_fields(
        self, article_id: UUID, fields: dict[str, Any], updated_at: datetime
    ) -> Article | None:
        sql, params = _article_update_sql(article_id, fields, updated_at)

        conn = self._get_conn()
        try:
            cur = conn.execute(sql, params)
            conn.commit()
            if cur.rowcount == 0:
                return None
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        return self.get_by_id(article_id)

    def compare_and_set_status(
        self,
        article_id: UUID,
        expected: ArticleStatus,
        new: ArticleStatus,
        updated_at: datetime,
    ) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "UPDATE articles SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
                (new, format_dt(updated_at), str(article_id), expected),
            )
            conn.commit()
            return cur.rowcount == 1
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def mark_published(
        self, article_id: UUID, xhs_note_id: str, updated_at: datetime
    ) -> Article | None:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE articles
                SET xhs_note_id = ?, status = 'published', updated_at = ?
                WHERE id = ?
            """,
                (xhs_note_id, format_dt(updated_at), str(article_id)),
            )
            conn.commit()
            if cur.rowcount == 0:
                return None
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        return self.get_by_id(article_id)

    def delete_cascade(self, article_id: UUID) -> bool:
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            # Explicit child deletes (handles DBs created without ON DELETE CASCADE)
            article_id_str = str(article_id)
            conn.execute("DELETE FROM article_versions WHERE article_id = ?", (article_id_str,))
            conn.execute("DELETE FROM article_images WHERE article_id = ?", (article_id_str,))
            conn.execute("DELETE FROM article_stats WHERE article_id = ?", (article_id_str,))
            cur = conn.execute("DELETE FROM articles WHERE id = ?", (article_id_str,))
            conn.commit()
            return cur.rowcount > 0
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def list(self, filters: ArticleFilter) -> tuple[builtins.list[Article], int]:
        where = " WHERE 1=1"
        params: builtins.list[Any] = []

        if filters.status:
            where += " AND status = ?"
            params.append(filters.status)
        if filters.tag:
            where += " AND EXISTS (SELECT 1 FROM json_each(articles.tags) WHERE json_each.value = ?)"
            params.append(filters.tag)
        if filters.category:
            where += " AND category = ?"
            params.append(filters.category)
        if filters.search:
            where += " AND (icontains(title, ?) OR icontains(content, ?))"
            params.extend([filters.search, filters.search])

        conn = self._get_conn()
        try:
            row = conn.execute(f"SELECT COUNT(*) AS cnt FROM articles{where}", params).fetchone()
            total = row["cnt"] if row else 0

            rows = conn.execute(
                f"SELECT * FROM articles{where} "
                "ORDER BY updated_at DESC, rowid DESC LIMIT ? OFFSET ?",
                [*params, filters.limit, filters.offset],
            ).fetchall()
            return [self._row_to_article(r) for r in rows], total
        finally:
            conn.close()


# -----------------------------------------------------------------------------
# Versions
# -----------------------------------------------------------------------------


class SQLiteVersionRepo(_SQLiteRepo):
    @staticmethod
    def _row_to_version(row: dict[str, Any]) -> ArticleVersion:
        return ArticleVersion(
            id=UUID(row["id"]),
            article_id=UUID(row["article_id"]),
            title=row["title"],
            content=row["content"],
            version_num=row["version_num"],
            created_at=parse_dt(row["created_at"]),
        )

    def _append_locked(
        self,
        conn: sqlite3.Connection,
        article_id: UUID,
        title: str,
        content: str | None,
        created_at: datetime,
    ) -> ArticleVersion:
        """Insert max(version_num)+1. Caller holds the write lock and commits."""
        row = conn.execute(
            "SELECT COALESCE(MAX(version_num), 0) AS max_num "
            "FROM article_versions WHERE article_id = ?",
            (str(article_id),),
        ).fetchone()
        version = ArticleVersion(
            article_id=article_id,
            title=title,
            content=content,
            version_num=row["max_num"] + 1,
            created_at=created_at,
        )
        try:
            conn.execute(
                """
                INSERT INTO article_versions
                (id, article_id, title, content, version_num, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """,
                (
                    str(version.id),
                    str(article_id),
                    version.title,
                    version.content,
                    version.version_num,
                    format_dt(version.created_at),
                ),
            )
        except sqlite3.IntegrityError as e:
            if "FOREIGN KEY" in str(e).upper():
                raise LookupError(f"Article {article_id} not found") from e
            raise DuplicateVersionError(article_id, version.version_num) from e
        return version

    def insert_next(
        self,
        article_id: UUID,
        title: str,
        content: str | None,
        created_at: datetime,
    ) -> ArticleVersion:
        conn = self._get_conn()
        try:
            # Take the write lock before reading max() so concurrent appends serialize
            conn.execute("BEGIN IMMEDIATE")
            version = self._append_locked(conn, article_id, title, content, created_at)
            conn.commit()
            return version
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def update_and_insert_next(
        self, article_id: UUID, fields: dict[str, Any], updated_at: datetime
    ) -> tuple[Article, ArticleVersion] | None:
        sql, params = _article_update_sql(article_id, fields, updated_at)

        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            if conn.execute(sql, params).rowcount == 0:
                conn.rollback()
                return None
            # Snapshot the row as written, under the same lock as the edit
            row = conn.execute(
                "SELECT * FROM articles WHERE id = ?", (str(article_id),)
            ).fetchone()
            article = SQLiteArticleRepo._row_to_article(row)
            version = self._append_locked(
                conn, article_id, article.title, article.content, updated_at
            )
            conn.commit()
            return article, version
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def list_by_article(self, article_id: UUID) -> builtins.list[ArticleVersion]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM article_versions WHERE article_id = ? ORDER BY version_num DESC",
                (str(article_id),),
            ).fetchall()
            return [self._row_to_version(r) for r in rows]
        finally:
            conn.close()


# -----------------------------------------------------------------------------
# Images
# -----------------------------------------------------------------------------


class SQLiteImageRepo(_SQLiteRepo):
    @staticmethod
    def _row_to_image(row: dict[str, Any]) -> ArticleImage:
        return ArticleImage(
            id=UUID(row["id"]),
            article_id=UUID(row["article_id"]),
            url=row["url"],
            storage_path=row["storage_path"],
            html_url=row["html_url"],
            html_storage_path=row["html_storage_path"],
            sort_order=row["sort_order"],
            created_at=parse_dt(row["created_at"]),
        )

    def get_by_id(self, image_id: UUID) -> ArticleImage | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM article_images WHERE id = ?", (str(image_id),)
            ).fetchone()
            return self._row_to_image(row) if row else None
        finally:
            conn.close()

    def insert(self, image: ArticleImage) -> ArticleImage:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO article_images (
                    id, article_id, url, storage_path, html_url,
                    html_storage_path, sort_order, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    str(image.id),
                    str(image.article_id),
                    image.url,
                    image.storage_path,
                    image.html_url,
                    image.html_storage_path,
                    image.sort_order,
                    format_dt(image.created_at),
                ),
            )
            conn.commit()
            return image
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def set_html(
        self, image_id: UUID, html_url: str | None, html_storage_path: str | None
    ) -> ArticleImage | None:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "UPDATE article_images SET html_url = ?, html_storage_path = ? WHERE id = ?",
                (html_url, html_storage_path, str(image_id)),
            )
            conn.commit()
            if cur.rowcount == 0:
                return None
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        return self.get_by_id(image_id)

    def delete(self, image_id: UUID) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM article_images WHERE id = ?", (str(image_id),))
            conn.commit()
        finally:
            conn.close()

    def list_by_article(self, article_id: UUID) -> builtins.list[ArticleImage]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT * FROM article_images WHERE article_id = ?
                ORDER BY sort_order ASC, created_at ASC, rowid ASC
            """,
                (str(article_id),),
            ).fetchall()
            return [self._row_to_image(r) for r in rows]
        finally:
            conn.close()


# -----------------------------------------------------------------------------
# Stats
# -----------------------------------------------------------------------------


class SQLiteStatsRepo(_SQLiteRepo):
    def insert(self, stats: ArticleStats) -> ArticleStats:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO article_stats
                (id, article_id, views, likes, favorites, comments, recorded_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    str(stats.id),
                    str(stats.article_id),
                    stats.views,
                    stats.likes,
                    stats.favorites,
                    stats.comments,
                    format_dt(stats.recorded_at),
                ),
            )
            conn.commit()
            return stats
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def list_by_article(self, article_id: UUID) -> builtins.list[ArticleStats]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM article_stats WHERE article_id = ? "
                "ORDER BY recorded_at DESC, rowid DESC",
                (str(article_id),),
            ).fetchall()
            return [
                ArticleStats(
                    id=UUID(r["id"]),
                    article_id=UUID(r["article_id"]),
                    views=r["views"],
                    likes=r["likes"],
                    favorites=r["favorites"],
                    comments=r["comments"],
                    recorded_at=parse_dt(r["recorded_at"]),
                )
                for r in rows
            ]
        finally:
            conn.close()
