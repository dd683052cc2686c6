"""
Natours API — Generic Resource Handlers
=========================================

What:  create / get_one / get_all / update / delete, written once and
       parameterized by a `Resource` descriptor per entity.
Why:   Tours, users and reviews share the same CRUD shape; what differs is
       the model, the validation schema, the default read scope and a few
       lifecycle steps (slug derivation, password hashing, rating updates).
How:   Lifecycle steps are explicit pipeline stages on the descriptor. Each
       stage is an async callable receiving a `SaveContext`; the handler
       invokes them around every persistence call:

           create:  validate → before_save → assign → flush → after_save → commit → reload
           update:  load → merge → validate → before_save → assign → flush → after_save → commit → reload
           delete:  load → before_delete → delete → flush → after_delete → commit

       Stages `pop` the keys they consume from `ctx.data`; whatever is left
       and is a mapped attribute is assigned to the instance as-is.

Transactions:
    Each write commits once, after its after_save/after_delete stages, so a
    rating recomputation lands in the same transaction as the review write.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    Type,
)

from pydantic import BaseModel
from sqlalchemy import Select, inspect as sa_inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from natours.exceptions import NotFoundError
from natours.services.query_builder import FieldProjection, QueryBuilder

logger = logging.getLogger(__name__)


@dataclass
class SaveContext:
    """
    What a pipeline stage sees.

    Attributes:
        db:        Session the write happens in
        instance:  ORM object being written (transient on create)
        data:      Validated values still to be applied, keyed by attribute name
        changed:   Keys the caller supplied (all document keys on create)
        is_new:    True on create
        previous:  Document of the instance before an update ({} on create)
    """

    db: AsyncSession
    instance: Any
    data: Dict[str, Any]
    changed: Set[str]
    is_new: bool
    previous: Dict[str, Any] = field(default_factory=dict)


Stage = Callable[[SaveContext], Awaitable[None]]


@dataclass
class Resource:
    """
    Describes one entity to the generic handlers.

    Attributes:
        name:            Used in not-found messages ("No tour found with that ID")
        model:           SQLAlchemy model class
        document_schema: Pydantic model a stored document must satisfy
        to_document:     instance → dict of document fields (for update merges)
        columns:         API field name → column, for filtering and sorting.
                         Attribute (snake_case) names are added automatically.
        scope:           Restricts every default read and write-by-id
        populate:        Loader options applied by get_one(populate=True)
    """

    name: str
    model: Type[Any]
    document_schema: Type[BaseModel]
    to_document: Callable[[Any], Dict[str, Any]]
    columns: Dict[str, Any] = field(default_factory=dict)
    scope: Optional[Callable[[Select], Select]] = None
    populate: Sequence[Any] = ()
    before_save: Sequence[Stage] = ()
    after_save: Sequence[Stage] = ()
    before_delete: Sequence[Stage] = ()
    after_delete: Sequence[Stage] = ()

    def __post_init__(self):
        for column in list(self.columns.values()):
            self.columns.setdefault(column.key, column)

    @property
    def primary_key(self):
        return self.model.id

    def select(self) -> Select:
        statement = select(self.model)
        if self.scope is not None:
            statement = self.scope(statement)
        return statement

    def attribute_names(self) -> Set[str]:
        return set(sa_inspect(self.model).attrs.keys())


class ResourceService:
    """CRUD over one `Resource`. Stateless apart from the descriptor."""

    def __init__(self, resource: Resource):
        self.resource = resource

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get_one(
        self,
        db: AsyncSession,
        resource_id: uuid.UUID,
        populate: bool = False,
    ) -> Any:
        statement = self.resource.select().where(self.resource.primary_key == resource_id)
        if populate and self.resource.populate:
            statement = statement.options(*self.resource.populate)
        instance = (await db.execute(statement)).scalar_one_or_none()
        if instance is None:
            raise NotFoundError(resource=self.resource.name, resource_id=str(resource_id))
        return instance

    async def get_all(
        self,
        db: AsyncSession,
        query_params: Mapping[str, str],
        base_filters: Sequence[Any] = (),
    ) -> Tuple[List[Any], FieldProjection]:
        statement = self.resource.select()
        for condition in base_filters:
            statement = statement.where(condition)

        builder = (
            QueryBuilder(
                statement,
                query_params,
                self.resource.columns,
                primary_key=self.resource.primary_key,
            )
            .filter()
            .sort()
            .limit_fields()
            .paginate()
        )
        result = await db.execute(builder.statement)
        return list(result.scalars().all()), builder.projection

    # ── Writes ────────────────────────────────────────────────────────────

    async def create(self, db: AsyncSession, data: Mapping[str, Any]) -> Any:
        document = self.resource.document_schema.model_validate(dict(data))
        values = document.model_dump()
        instance = self.resource.model()
        ctx = SaveContext(
            db=db,
            instance=instance,
            data=values,
            changed=set(values),
            is_new=True,
        )
        await self._save(ctx)
        logger.info("Created %s %s", self.resource.name, instance.id)
        return await self._reload(db, instance.id)

    async def update(self, db: AsyncSession, resource_id: uuid.UUID, patch: Mapping[str, Any]) -> Any:
        instance = await self.get_one(db, resource_id)
        return await self.apply_update(db, instance, patch)

    async def apply_update(self, db: AsyncSession, instance: Any, patch: Mapping[str, Any]) -> Any:
        """
        Merge `patch` into an already-loaded instance and save it.

        The merged document is validated against the full document schema,
        so cross-field rules (discount below price) hold after every update.
        """
        previous = self.resource.to_document(instance)
        merged = {**previous, **patch}
        document = self.resource.document_schema.model_validate(merged)
        validated = document.model_dump()
        changed = set(patch)
        ctx = SaveContext(
            db=db,
            instance=instance,
            data={key: validated[key] for key in changed if key in validated},
            changed=changed,
            is_new=False,
            previous=previous,
        )
        await self._save(ctx)
        logger.info("Updated %s %s (%s)", self.resource.name, instance.id, ", ".join(sorted(changed)))
        return await self._reload(db, instance.id)

    async def delete(self, db: AsyncSession, resource_id: uuid.UUID) -> None:
        instance = await self.get_one(db, resource_id)
        ctx = SaveContext(
            db=db,
            instance=instance,
            data={},
            changed=set(),
            is_new=False,
            previous=self.resource.to_document(instance),
        )
        for stage in self.resource.before_delete:
            await stage(ctx)
        await db.delete(instance)
        await db.flush()
        for stage in self.resource.after_delete:
            await stage(ctx)
        await db.commit()
        logger.info("Deleted %s %s", self.resource.name, resource_id)

    async def _reload(self, db: AsyncSession, resource_id: uuid.UUID) -> Any:
        # The write is committed; return it even when it now falls outside the scope
        statement = (
            select(self.resource.model)
            .where(self.resource.primary_key == resource_id)
            .execution_options(populate_existing=True)
        )
        return (await db.execute(statement)).scalar_one()

    async def _save(self, ctx: SaveContext) -> None:
        for stage in self.resource.before_save:
            await stage(ctx)

        attributes = self.resource.attribute_names()
        for key, value in ctx.data.items():
            if key in attributes:
                setattr(ctx.instance, key, value)

        if ctx.is_new:
            ctx.db.add(ctx.instance)
        await ctx.db.flush()

        for stage in self.resource.after_save:
            await stage(ctx)
        await ctx.db.commit()
