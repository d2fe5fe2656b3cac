from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest
from fakes import BACKEND_URL, FakeBackend

from bitmore.operations.invoker import OperationInvoker
from bitmore.operations.registry import OperationRegistry


@pytest.fixture
def registry() -> OperationRegistry:
    return OperationRegistry()


@pytest.fixture
def make_invoker(registry: OperationRegistry) -> Callable[[FakeBackend], OperationInvoker]:
    def _make(backend: FakeBackend) -> OperationInvoker:
        client = httpx.AsyncClient(base_url=BACKEND_URL, transport=httpx.MockTransport(backend))
        return OperationInvoker(client, registry)

    return _make
