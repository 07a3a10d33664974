"""
Plan Store - SQLite-backed versioned plan storage.

Features:
- CRUD operations for plans stored as JSON documents
- Revision history (every committed revision is kept)
- Conditional writes: an update only lands on the revision it was based on
- Per-plan locks serializing read-modify-write cycles within a process
- File context stored beside each plan
- Search by type/status/author/text/creation date
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

import aiosqlite

from .errors import OptimisticLockError, PlanNotFoundError
from .models import Comment, Plan, PlanContext, PlanStatus, PlanType, ReviewStatus, utcnow

logger = logging.getLogger(__name__)


@dataclass
class PlanFilters:
	"""Filters recognized by PlanStore.find_all."""
	plan_type: Optional[PlanType] = None
	status: Optional[PlanStatus] = None
	author: Optional[str] = None
	search: Optional[str] = None
	created_after: Optional[datetime] = None
	created_before: Optional[datetime] = None
	limit: Optional[int] = None
	offset: Optional[int] = None


def _escape_like(term: str) -> str:
	"""Make LIKE wildcards in a search term match literally."""
	return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _ts(value: datetime) -> str:
	if value.tzinfo is None:
		value = value.astimezone()
	return value.astimezone(timezone.utc).isoformat()


class PlanStore:
	"""
	SQLite-backed plan storage with revisions.

	Usage:
		store = PlanStore("data/plans.db")
		await store.init()

		await store.save(plan)

		# Commit revision 4 on top of revision 3
		plan.bump_revision()
		await store.update(plan, expected_revision=3)

		plan = await store.find_by_id(plan_id)
	"""

	def __init__(self, db_path: str):
		"""Initialize the plan store."""
		self.db_path = Path(db_path)
		self.db_path.parent.mkdir(parents=True, exist_ok=True)
		self._db: Optional[aiosqlite.Connection] = None
		# Entries vanish once no writer holds or awaits the lock
		self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

	async def init(self):
		"""Initialize the database schema."""
		self._db = await aiosqlite.connect(str(self.db_path))
		self._db.row_factory = aiosqlite.Row

		await self._db.execute("""
			CREATE TABLE IF NOT EXISTS plans (
				id TEXT NOT NULL,
				revision INTEGER NOT NULL,
				plan_type TEXT NOT NULL,
				status TEXT NOT NULL,
				title TEXT NOT NULL,
				description TEXT NOT NULL,
				author TEXT,
				data TEXT NOT NULL,
				created_at TEXT NOT NULL,
				updated_at TEXT NOT NULL,
				is_current INTEGER DEFAULT 1,
				UNIQUE(id, revision)
			)
		""")

		await self._db.execute("""
			CREATE INDEX IF NOT EXISTS idx_plans_current ON plans(id, is_current)
		""")

		await self._db.execute("""
			CREATE INDEX IF NOT EXISTS idx_plans_created ON plans(is_current, created_at)
		""")

		await self._db.execute("""
			CREATE TABLE IF NOT EXISTS plan_contexts (
				plan_id TEXT PRIMARY KEY,
				data TEXT NOT NULL,
				created_at TEXT NOT NULL,
				updated_at TEXT NOT NULL
			)
		""")

		await self._db.commit()
		logger.info(f"Plan store initialized: {self.db_path}")

	async def close(self):
		"""Close the database connection."""
		if self._db:
			await self._db.close()
			self._db = None

	async def _conn(self) -> aiosqlite.Connection:
		if not self._db:
			await self.init()
		return self._db

	def lock(self, plan_id: str) -> asyncio.Lock:
		"""Lock serializing writers of one plan."""
		key = str(plan_id)
		lock = self._locks.get(key)
		if lock is None:
			lock = asyncio.Lock()
			self._locks[key] = lock
		return lock

	async def _insert(self, db: aiosqlite.Connection, plan: Plan) -> None:
		await db.execute(
			"""
			INSERT INTO plans (
				id, revision, plan_type, status, title, description, author,
				data, created_at, updated_at, is_current
			)
			VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1)
			""",
			(
				str(plan.id),
				plan.revision,
				plan.plan_type.value,
				plan.status.value,
				plan.metadata.title,
				plan.metadata.description,
				plan.metadata.author,
				plan.model_dump_json(by_alias=True, exclude_none=True),
				_ts(plan.created_at),
				_ts(plan.updated_at),
			)
		)

	async def save(self, plan: Plan) -> None:
		"""
		Persist a new plan.

		Raises:
			OptimisticLockError: If a plan with the same ID already exists
		"""
		db = await self._conn()
		if await self.exists(plan.id):
			raise OptimisticLockError(f"Plan with ID {plan.id} already exists")

		await self._insert(db, plan)
		await db.commit()
		logger.info(f"Created plan {plan.id}")

	async def update(self, plan: Plan, expected_revision: int) -> Plan:
		"""
		Store a new revision of a plan.

		The write only succeeds if the current stored revision is still
		expected_revision. The previous revision is kept as history.

		Args:
			plan: Plan carrying its new revision number
			expected_revision: Revision the change was based on

		Raises:
			OptimisticLockError: If the stored revision doesn't match
			PlanNotFoundError: If plan not found
		"""
		if plan.revision <= expected_revision:
			raise ValueError(
				f"New revision {plan.revision} must be greater than {expected_revision}"
			)

		db = await self._conn()
		cursor = await db.execute(
			"UPDATE plans SET is_current = 0 WHERE id = ? AND revision = ? AND is_current = 1",
			(str(plan.id), expected_revision)
		)

		if cursor.rowcount == 0:
			current = await self._current_revision(plan.id)
			if current is None:
				raise PlanNotFoundError(plan.id)
			raise OptimisticLockError(
				f"Revision mismatch: expected {expected_revision}, got {current}"
			)

		try:
			await self._insert(db, plan)
		except Exception:
			await db.rollback()
			raise

		await db.commit()
		logger.info(f"Updated plan {plan.id} to revision {plan.revision}")

		return plan

	async def _current_revision(self, plan_id: str) -> Optional[int]:
		db = await self._conn()
		async with db.execute(
			"SELECT revision FROM plans WHERE id = ? AND is_current = 1",
			(str(plan_id),)
		) as cursor:
			row = await cursor.fetchone()
		return row["revision"] if row else None

	async def find_by_id(self, plan_id: str, revision: Optional[int] = None) -> Optional[Plan]:
		"""
		Get a plan by ID, optionally at a specific revision.

		Returns:
			Plan object or None if not found
		"""
		db = await self._conn()

		if revision is not None:
			query = "SELECT data FROM plans WHERE id = ? AND revision = ?"
			params = (str(plan_id), revision)
		else:
			query = "SELECT data FROM plans WHERE id = ? AND is_current = 1"
			params = (str(plan_id),)

		async with db.execute(query, params) as cursor:
			row = await cursor.fetchone()

		if not row:
			return None

		return Plan.model_validate_json(row["data"])

	async def exists(self, plan_id: str) -> bool:
		return await self._current_revision(plan_id) is not None

	async def find_all(self, filters: Optional[PlanFilters] = None) -> list[Plan]:
		"""
		Search current plans, newest first.

		Args:
			filters: Optional PlanFilters

		Returns:
			List of matching Plan objects
		"""
		db = await self._conn()
		filters = filters or PlanFilters()

		conditions = ["is_current = 1"]
		params: list = []

		if filters.plan_type:
			conditions.append("plan_type = ?")
			params.append(PlanType(filters.plan_type).value)

		if filters.status:
			conditions.append("status = ?")
			params.append(PlanStatus(filters.status).value)

		if filters.author:
			conditions.append("author = ?")
			params.append(filters.author)

		if filters.search:
			conditions.append("(title LIKE ? ESCAPE '\\' OR description LIKE ? ESCAPE '\\')")
			pattern = f"%{_escape_like(filters.search)}%"
			params.extend([pattern, pattern])

		if filters.created_after:
			conditions.append("created_at >= ?")
			params.append(_ts(filters.created_after))

		if filters.created_before:
			conditions.append("created_at <= ?")
			params.append(_ts(filters.created_before))

		query = f"SELECT data FROM plans WHERE {' AND '.join(conditions)} ORDER BY created_at DESC"

		if filters.limit is not None or filters.offset:
			query += " LIMIT ? OFFSET ?"
			params.extend([filters.limit if filters.limit is not None else -1, filters.offset or 0])

		async with db.execute(query, params) as cursor:
			rows = await cursor.fetchall()

		return [Plan.model_validate_json(row["data"]) for row in rows]

	async def get_history(self, plan_id: str) -> list[Plan]:
		"""
		Get all stored revisions of a plan.

		Returns:
			List of Plan objects, newest first
		"""
		db = await self._conn()

		async with db.execute(
			"SELECT data FROM plans WHERE id = ? ORDER BY revision DESC",
			(str(plan_id),)
		) as cursor:
			rows = await cursor.fetchall()

		return [Plan.model_validate_json(row["data"]) for row in rows]

	async def delete(self, plan_id: str) -> bool:
		"""
		Delete a plan, all its revisions and its context.

		Returns:
			True if anything was deleted
		"""
		db = await self._conn()

		cursor = await db.execute("DELETE FROM plans WHERE id = ?", (str(plan_id),))
		await db.execute("DELETE FROM plan_contexts WHERE plan_id = ?", (str(plan_id),))
		await db.commit()
		deleted = cursor.rowcount > 0
		if deleted:
			logger.info(f"Deleted plan {plan_id}")
		return deleted

	async def _modify_current(self, plan_id: str, mutate: Callable[[Plan], bool]) -> bool:
		"""
		Apply an in-place change to the current revision.

		Used for comments and review decisions, which do not create a new
		revision. Returns False (and writes nothing) when the plan is missing
		or mutate reports that its target was not found.
		"""
		async with self.lock(plan_id):
			plan = await self.find_by_id(plan_id)
			if plan is None or not mutate(plan):
				return False

			plan.touch()
			db = await self._conn()
			await db.execute(
				"UPDATE plans SET data = ?, updated_at = ? WHERE id = ? AND revision = ? AND is_current = 1",
				(
					plan.model_dump_json(by_alias=True, exclude_none=True),
					_ts(plan.updated_at),
					str(plan.id),
					plan.revision,
				)
			)
			await db.commit()
			return True

	async def add_plan_comment(self, plan_id: str, comment: Comment) -> bool:
		def mutate(plan: Plan) -> bool:
			plan.comments.append(comment)
			return True

		return await self._modify_current(plan_id, mutate)

	async def update_plan_comment(self, plan_id: str, comment_id: str, content: str) -> bool:
		def mutate(plan: Plan) -> bool:
			comment = plan.find_comment(comment_id)
			if comment is None:
				return False
			comment.content = content
			comment.updated_at = utcnow()
			return True

		return await self._modify_current(plan_id, mutate)

	async def delete_plan_comment(self, plan_id: str, comment_id: str) -> bool:
		def mutate(plan: Plan) -> bool:
			if plan.find_comment(comment_id) is None:
				return False
			plan.comments = [c for c in plan.comments if c.id != comment_id]
			return True

		return await self._modify_current(plan_id, mutate)

	async def add_step_comment(self, plan_id: str, step_id: str, comment: Comment) -> bool:
		def mutate(plan: Plan) -> bool:
			step = plan.get_step(step_id)
			if step is None:
				return False
			step.comments.append(comment)
			return True

		return await self._modify_current(plan_id, mutate)

	async def update_step_comment(
		self, plan_id: str, step_id: str, comment_id: str, content: str
	) -> bool:
		def mutate(plan: Plan) -> bool:
			step = plan.get_step(step_id)
			comment = step.find_comment(comment_id) if step else None
			if comment is None:
				return False
			comment.content = content
			comment.updated_at = utcnow()
			return True

		return await self._modify_current(plan_id, mutate)

	async def delete_step_comment(self, plan_id: str, step_id: str, comment_id: str) -> bool:
		def mutate(plan: Plan) -> bool:
			step = plan.get_step(step_id)
			if step is None or step.find_comment(comment_id) is None:
				return False
			step.comments = [c for c in step.comments if c.id != comment_id]
			return True

		return await self._modify_current(plan_id, mutate)

	async def set_step_review_status(self, plan_id: str, step_id: str, review: ReviewStatus) -> bool:
		def mutate(plan: Plan) -> bool:
			step = plan.get_step(step_id)
			if step is None:
				return False
			step.review_status = review
			return True

		return await self._modify_current(plan_id, mutate)

	# ------------------------------------------------------------------
	# Context
	# ------------------------------------------------------------------

	async def save_context(self, context: PlanContext) -> PlanContext:
		"""Insert or replace the context of a plan. The first created_at is kept."""
		db = await self._conn()
		await db.execute(
			"""
			INSERT INTO plan_contexts (plan_id, data, created_at, updated_at)
			VALUES (?, ?, ?, ?)
			ON CONFLICT(plan_id) DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at
			""",
			(
				str(context.plan_id),
				context.model_dump_json(by_alias=True, exclude_none=True),
				_ts(context.created_at),
				_ts(context.updated_at),
			)
		)
		await db.commit()
		logger.info(f"Saved context for plan {context.plan_id} ({len(context.files)} files)")
		return context

	async def find_context(self, plan_id: str) -> Optional[PlanContext]:
		db = await self._conn()
		async with db.execute(
			"SELECT data FROM plan_contexts WHERE plan_id = ?",
			(str(plan_id),)
		) as cursor:
			row = await cursor.fetchone()
		return PlanContext.model_validate_json(row["data"]) if row else None

	async def delete_context(self, plan_id: str) -> bool:
		db = await self._conn()
		cursor = await db.execute("DELETE FROM plan_contexts WHERE plan_id = ?", (str(plan_id),))
		await db.commit()
		return cursor.rowcount > 0
