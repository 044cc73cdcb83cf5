from pathlib import Path

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from notewise.main import create_app
from tests.fakes import FakeAdapter, fake_adapters, make_settings


@pytest.fixture
def app_factory(tmp_path: Path):
    def _factory(
        *,
        ollama: FakeAdapter | None = None,
        gemini: FakeAdapter | None = None,
        huggingface: FakeAdapter | None = None,
        **settings_overrides,
    ):
        settings = make_settings(tmp_path, **settings_overrides)
        adapters = fake_adapters(ollama=ollama, gemini=gemini, huggingface=huggingface)
        app = create_app(settings, adapters=adapters)
        return app, adapters

    return _factory


@pytest.fixture
async def client(app_factory):
    app, adapters = app_factory(ollama=FakeAdapter("ollama", "Here is the summary: A fox jumps."))
    async with LifespanManager(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as http_client:
            http_client.app = app  # type: ignore[attr-defined]
            http_client.adapters = adapters  # type: ignore[attr-defined]
            yield http_client
