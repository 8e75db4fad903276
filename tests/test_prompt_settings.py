import asyncio

from pymongo.errors import AutoReconnect

from safetriage.services.prompt_settings import DEFAULT_SYSTEM_PROMPT, PromptSettingsService
from safetriage.utils.cache import TTLCache


class Ticker:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class SettingsCollection:
    def __init__(self, doc=None, error=None):
        self.doc = doc
        self.error = error
        self.reads = 0

    async def find_one(self, query):
        self.reads += 1
        if self.error:
            raise self.error
        return self.doc


def _service(collection, ticker):
    async def factory():
        return collection

    return PromptSettingsService(cache=TTLCache(60, clock=ticker), collection_factory=factory)


def test_ttl_cache_expires():
    ticker = Ticker()
    cache = TTLCache(60, clock=ticker)
    cache.set("value")

    ticker.now = 59.9
    assert cache.get() == "value"
    ticker.now = 60
    assert cache.get() is None


def test_prompt_is_read_once_per_cache_window():
    ticker = Ticker()
    collection = SettingsCollection({"key": "systemPrompt", "value": "Be brief."})
    service = _service(collection, ticker)

    first = asyncio.run(service.get_system_prompt())
    second = asyncio.run(service.get_system_prompt())
    ticker.now = 61
    third = asyncio.run(service.get_system_prompt())

    assert (first.system_prompt, first.source, first.cached) == ("Be brief.", "database", False)
    assert second.cached is True
    assert third.cached is False
    assert collection.reads == 2


def test_missing_prompt_falls_back_to_default():
    service = _service(SettingsCollection(None), Ticker())

    response = asyncio.run(service.get_system_prompt())

    assert response.system_prompt == DEFAULT_SYSTEM_PROMPT
    assert response.source == "default"


def test_database_error_falls_back_without_caching():
    ticker = Ticker()
    collection = SettingsCollection(error=AutoReconnect("connection reset"))
    service = _service(collection, ticker)

    asyncio.run(service.get_system_prompt())
    response = asyncio.run(service.get_system_prompt())

    assert response.system_prompt == DEFAULT_SYSTEM_PROMPT
    assert collection.reads == 2
