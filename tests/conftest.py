"""
Shared fixtures: an in-memory stand-in for the Motor database and a
recording Telegram client.
"""

import copy
import itertools
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from bson import ObjectId

from app.core.config import BotConfig
from app.db import mongo
from app.flow.context import HandlerContext
from app.flow.dispatcher import Dispatcher

ADMIN_GROUP_ID = -1001234567890
MESSAGE_TOPIC_ID = 11
APPLICATION_TOPIC_ID = 22


def _matches(document, query):
    return all(document.get(key) == value for key, value in query.items())


class FakeCollection:
    """Supports the subset of the Motor collection API the services use."""

    def __init__(self, name):
        self.name = name
        self.documents = []
        self.indexes = []

    async def find_one(self, query):
        for document in self.documents:
            if _matches(document, query):
                return copy.deepcopy(document)
        return None

    async def insert_one(self, document):
        stored = copy.deepcopy(document)
        stored.setdefault("_id", ObjectId())
        self.documents.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    def _apply(self, document, update, inserting):
        before = copy.deepcopy(document)
        for key, value in update.get("$set", {}).items():
            document[key] = copy.deepcopy(value)
        if inserting:
            for key, value in update.get("$setOnInsert", {}).items():
                document[key] = copy.deepcopy(value)
        for key, value in update.get("$push", {}).items():
            document.setdefault(key, []).append(copy.deepcopy(value))
        for key, value in update.get("$inc", {}).items():
            document[key] = document.get(key, 0) + value
        return document != before

    async def update_one(self, query, update, upsert=False):
        for document in self.documents:
            if _matches(document, query):
                modified = self._apply(document, update, inserting=False)
                return SimpleNamespace(matched_count=1, modified_count=int(modified), upserted_id=None)

        if not upsert:
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

        document = copy.deepcopy(query)
        document["_id"] = ObjectId()
        self._apply(document, update, inserting=True)
        self.documents.append(document)
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=document["_id"])

    async def find_one_and_update(self, query, update, upsert=False, return_document=False):
        for document in self.documents:
            if _matches(document, query):
                before = copy.deepcopy(document)
                self._apply(document, update, inserting=False)
                return copy.deepcopy(document if return_document else before)

        if not upsert:
            return None

        document = copy.deepcopy(query)
        document["_id"] = ObjectId()
        self._apply(document, update, inserting=True)
        self.documents.append(document)
        return copy.deepcopy(document) if return_document else None

    async def delete_one(self, query):
        for index, document in enumerate(self.documents):
            if _matches(document, query):
                del self.documents[index]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def count_documents(self, query):
        return sum(1 for document in self.documents if _matches(document, query))

    async def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))
        return kwargs.get("name")


class FakeDatabase:
    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


class FakeTelegram:
    """
    Records every Bot API call. Sends return fresh message ids starting
    at 1000 so tests can follow them into the thread map.
    """

    def __init__(self):
        self._ids = itertools.count(1000)
        self.send_message = AsyncMock(side_effect=self._sent)
        self.send_media = AsyncMock(side_effect=self._sent)
        self.edit_message_reply_markup = AsyncMock(return_value=True)
        self.answer_callback_query = AsyncMock(return_value=True)

    async def _sent(self, chat_id, *args, **kwargs):
        return {"message_id": next(self._ids), "chat": {"id": chat_id}}

    def texts_to(self, chat_id):
        return [c.args[1] for c in self.send_message.call_args_list if c.args[0] == chat_id]


@pytest.fixture
def db(monkeypatch):
    database = FakeDatabase()
    monkeypatch.setattr(mongo, "_database", database)
    return database


@pytest.fixture
def config():
    return BotConfig(
        admin_group_id=ADMIN_GROUP_ID,
        message_topic_id=MESSAGE_TOPIC_ID,
        application_topic_id=APPLICATION_TOPIC_ID,
    )


@pytest.fixture
def telegram():
    return FakeTelegram()


@pytest.fixture
def ctx(db, config, telegram):
    return HandlerContext.build(config, telegram)


@pytest.fixture
def dispatcher(ctx):
    return Dispatcher(ctx)
