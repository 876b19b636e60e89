import textwrap

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from vanity.app import App

GOPKG_CONFIG = """
site_info:
  name: example.com
gopkg:
  - /chrisify https://github.com/zikes/chrisify
  - /myrepo hg https://bitbucket.org/zikes/myrepo
  - /github/$1/$2 https://github.com/$1/$2
"""


@pytest.fixture
def write_config(tmp_path):
    """Write a YAML config into the test's temporary directory."""

    def _write(content: str, name: str = "vanity.config.yaml"):
        path = tmp_path / name
        path.write_text(textwrap.dedent(content), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def config_path(write_config):
    return write_config(GOPKG_CONFIG)


@pytest_asyncio.fixture
async def app(config_path) -> App:
    return App(config=config_path, dev_mode=True)


@pytest_asyncio.fixture
async def client(app: App):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://example.com") as c:
        yield c
