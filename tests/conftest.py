"""
Pytest configuration and fixtures for padrun tests.
"""

import json
import sys
from pathlib import Path

import pytest

# Add the repository root to path for imports
# This allows `from padrun.runtime import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from graphql import GraphQLSchema, build_schema  # noqa: E402

from padrun.pipeline.context import Invocation, PadRequest  # noqa: E402
from padrun.pipeline.observability import reset_metrics  # noqa: E402
from padrun.proxy.manager import ORIGIN_URL_SECRET  # noqa: E402
from padrun.starter import STARTER_CODE  # noqa: E402


HELLO_SDL = """
  type Query {
    hello: String
  }
"""


def make_hello_schema() -> GraphQLSchema:
    schema = build_schema(HELLO_SDL)
    schema.query_type.fields["hello"].resolve = lambda root, info: "Hello world!"
    return schema


def user_context(tenant: dict) -> str:
    """Encode a tenant context the way the platform sends it."""
    return json.dumps([{"key": key, "value": value} for key, value in tenant.items()])


def make_invocation(
    query: str = "{ hello }",
    tenant: dict | None = None,
    url: str | None = None,
    **request_kwargs,
) -> Invocation:
    secrets = {"userContext": user_context(tenant or {})}
    if url is not None:
        secrets[ORIGIN_URL_SECRET] = url
    return Invocation(request=PadRequest.graphql(query, **request_kwargs), secrets=secrets)


@pytest.fixture(autouse=True)
def clean_metrics():
    """Isolate the global metrics between tests."""
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def hello_schema():
    """Schema with a single `hello` field resolving to "Hello world!"."""
    return make_hello_schema()


@pytest.fixture
def starter_source():
    """Source of the starter pad."""
    return STARTER_CODE


@pytest.fixture
def tenant():
    """Sample tenant context."""
    return {"API_TOKEN": "tok-123", "REGION": "eu"}


@pytest.fixture
def pad_url():
    """Sample public invocation URL."""
    return "https://pads.example.com/p/abc123"
