# chat_relay/infrastructure/uow.py

from typing import Any, Dict, Type

from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.infrastructure.data_mappers import DataMapper


class UnitOfWork:
    """Collects pending row changes and writes them in one transaction.

    Gateways register the rows they create, touch or remove, and install a
    mapper for each model type they handle. Interactors call ``commit`` once
    per use case, so a whole batch (for example a mark-read request) lands
    in a single write.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.dirty: Dict[int, Any] = {}
        self.new: Dict[int, Any] = {}
        self.deleted: Dict[int, Any] = {}
        self.mappers: Dict[Type, DataMapper] = {}

    def register_dirty(self, model: Any) -> None:
        model_id = id(model)
        if model_id not in self.new:
            self.dirty[model_id] = model

    def register_deleted(self, model: Any) -> None:
        model_id = id(model)
        if model_id in self.new:
            # never reached the database, nothing to delete
            self.new.pop(model_id)
            return
        self.dirty.pop(model_id, None)
        self.deleted[model_id] = model

    def register_new(self, model: Any) -> Any:
        self.new[id(model)] = model
        return model

    async def flush(self) -> None:
        for model in self.new.values():
            await self.mappers[type(model)].insert(model)
        for model in self.dirty.values():
            await self.mappers[type(model)].update(model)
        for model in self.deleted.values():
            await self.mappers[type(model)].delete(model)

        self.new.clear()
        self.dirty.clear()
        self.deleted.clear()

    async def commit(self) -> None:
        await self.flush()
        await self.session.commit()

    async def rollback(self) -> None:
        self.new.clear()
        self.dirty.clear()
        self.deleted.clear()
        await self.session.rollback()
