"""
Repository - Relational persistence for resources, questions and answers

SQLAlchemy Core tables on any SQLAlchemy URL (SQLite for local use and
tests, PostgreSQL in deployment):

    resources(uuid, created_at, service, entity, source, path)
    questions(uuid, role_description, content)
    question_responses(question_uuid, response)
    question_references(question_uuid, resource_uuid)

Listing is keyset-paginated on uuid: pass the last uuid of the previous page
as `cursor`.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    insert,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from greyseal.errors import NotFoundError, StorageError
from greyseal.models import Question, Resource, SourceKind

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50

metadata = MetaData()

resources_table = Table(
    "resources",
    metadata,
    Column("uuid", String, primary_key=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("service", Text, nullable=False),
    Column("entity", Text, nullable=False),
    Column("source", String(32), nullable=False),
    Column("path", Text, nullable=True),
)

questions_table = Table(
    "questions",
    metadata,
    Column("uuid", String, primary_key=True),
    Column("role_description", Text, nullable=False),
    Column("content", Text, nullable=False),
)

question_responses_table = Table(
    "question_responses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("question_uuid", String, ForeignKey("questions.uuid", ondelete="CASCADE"), nullable=False, index=True),
    Column("response", Text, nullable=False),
)

question_references_table = Table(
    "question_references",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("question_uuid", String, ForeignKey("questions.uuid", ondelete="CASCADE"), nullable=False, index=True),
    Column("resource_uuid", String, nullable=False, index=True),
)


def create_db_engine(url: str) -> Engine:
    """Create an engine and make sure every table exists"""
    try:
        engine = create_engine(url, pool_pre_ping=True)
        metadata.create_all(engine)
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to initialise database at {url}: {e}") from e
    logger.info(f"Database ready ({engine.url.get_backend_name()})")
    return engine


def _page_limit(limit: Optional[int]) -> int:
    return limit if limit and limit > 0 else DEFAULT_PAGE_SIZE


class ResourceRepository:
    """CRUD for resources"""

    def __init__(self, engine: Engine):
        self.engine = engine

    @staticmethod
    def _to_resource(row) -> Resource:
        return Resource(
            id=row.uuid,
            created_at=row.created_at,
            service=row.service,
            entity=row.entity,
            source_kind=SourceKind.parse(row.source),
            locator=row.path,
        )

    def create(self, resource: Resource) -> Resource:
        values = {
            "uuid": resource.id,
            "created_at": resource.created_at,
            "service": resource.service,
            "entity": resource.entity,
            "source": resource.source_kind.value,
            "path": resource.locator,
        }
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(resources_table).values(**values))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create resource {resource.id}: {e}") from e
        return resource

    def get(self, resource_id: str) -> Resource:
        query = select(resources_table).where(resources_table.c.uuid == resource_id)
        try:
            with self.engine.connect() as conn:
                row = conn.execute(query).first()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read resource {resource_id}: {e}") from e
        if row is None:
            raise NotFoundError(f"Resource not found: {resource_id}")
        return self._to_resource(row)

    def list(self, cursor: Optional[str] = None, limit: Optional[int] = None) -> List[Resource]:
        query = select(resources_table).order_by(resources_table.c.uuid).limit(_page_limit(limit))
        if cursor:
            query = query.where(resources_table.c.uuid > cursor)
        try:
            with self.engine.connect() as conn:
                return [self._to_resource(row) for row in conn.execute(query)]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list resources: {e}") from e

    def delete(self, resource_id: str) -> bool:
        """Delete a resource and any answer references pointing at it"""
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    delete(question_references_table)
                    .where(question_references_table.c.resource_uuid == resource_id)
                )
                result = conn.execute(delete(resources_table).where(resources_table.c.uuid == resource_id))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete resource {resource_id}: {e}") from e
        return result.rowcount > 0


class QuestionRepository:
    """CRUD for questions plus their saved answers"""

    def __init__(self, engine: Engine):
        self.engine = engine

    @staticmethod
    def _to_question(row) -> Question:
        return Question(id=row.uuid, content=row.content, role_description=row.role_description)

    def create(self, question: Question) -> Question:
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(questions_table).values(
                    uuid=question.id,
                    role_description=question.role_description,
                    content=question.content,
                ))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create question {question.id}: {e}") from e
        return question

    def get(self, question_id: str) -> Question:
        query = select(questions_table).where(questions_table.c.uuid == question_id)
        try:
            with self.engine.connect() as conn:
                row = conn.execute(query).first()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read question {question_id}: {e}") from e
        if row is None:
            raise NotFoundError(f"Question not found: {question_id}")
        return self._to_question(row)

    def list(self, cursor: Optional[str] = None, limit: Optional[int] = None) -> List[Question]:
        query = select(questions_table).order_by(questions_table.c.uuid).limit(_page_limit(limit))
        if cursor:
            query = query.where(questions_table.c.uuid > cursor)
        try:
            with self.engine.connect() as conn:
                return [self._to_question(row) for row in conn.execute(query)]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list questions: {e}") from e

    def delete(self, question_id: str) -> bool:
        try:
            with self.engine.begin() as conn:
                for table in (question_references_table, question_responses_table):
                    conn.execute(delete(table).where(table.c.question_uuid == question_id))
                result = conn.execute(delete(questions_table).where(questions_table.c.uuid == question_id))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete question {question_id}: {e}") from e
        return result.rowcount > 0

    def save_answer(self, question_id: str, message: str, references: Sequence[str]) -> None:
        """Write the response and one reference row per resource, in one transaction"""
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(question_responses_table).values(
                    question_uuid=question_id,
                    response=message,
                ))
                if references:
                    conn.execute(
                        insert(question_references_table),
                        [{"question_uuid": question_id, "resource_uuid": ref} for ref in references],
                    )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save answer for question {question_id}: {e}") from e
        logger.debug(f"Saved answer for question {question_id} ({len(references)} references)")

    def get_answer(self, question_id: str) -> Tuple[str, Tuple[str, ...]]:
        """Latest saved response and its references for a question"""
        responses = (
            select(question_responses_table.c.response)
            .where(question_responses_table.c.question_uuid == question_id)
            .order_by(question_responses_table.c.id.desc())
            .limit(1)
        )
        refs = (
            select(question_references_table.c.resource_uuid)
            .where(question_references_table.c.question_uuid == question_id)
        )
        try:
            with self.engine.connect() as conn:
                message = conn.execute(responses).scalar()
                references = {row.resource_uuid for row in conn.execute(refs)}
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read answer for question {question_id}: {e}") from e
        if message is None:
            raise NotFoundError(f"No answer saved for question {question_id}")
        return message, tuple(sorted(references))
