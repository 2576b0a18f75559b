"""Shared test fixtures for the camunda_connector test suite."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from camunda_connector.config import (
    CamundaConfig,
    ConnectorConfig,
    LoggingTransportConfig,
    RabbitMQConfig,
)
from camunda_connector.engine_client import ProcessEngineClient
from camunda_connector.transport import Delivery

from fakes import ENGINE_URL


@pytest.fixture
def camunda_config() -> CamundaConfig:
    return CamundaConfig(api_url=ENGINE_URL, timeout_seconds=5.0)


@pytest.fixture
def rabbitmq_config() -> RabbitMQConfig:
    return RabbitMQConfig(
        host="rabbit-test",
        queue="bpm-tasks",
        tick_interval_seconds=0.01,
        reconnect_delay_seconds=2.5,
    )


@pytest.fixture
def logging_transport_config() -> LoggingTransportConfig:
    return LoggingTransportConfig(enabled=True, queue="bpm-logs", vhost="logs")


@pytest.fixture
def connector_config(
    camunda_config: CamundaConfig,
    rabbitmq_config: RabbitMQConfig,
    logging_transport_config: LoggingTransportConfig,
) -> ConnectorConfig:
    return ConnectorConfig(
        name="test-connector",
        log_owner="bpm-team",
        health_port=18080,
        camunda=camunda_config,
        rabbitmq=rabbitmq_config,
        logging_transport=logging_transport_config,
    )


@pytest.fixture
def delivery_factory():
    """Factory to create Delivery instances with overrides."""

    def _make(**overrides) -> Delivery:
        defaults = dict(
            delivery_tag=1,
            body=b'{"subject": "test"}',
            headers={"camundaProcessInstanceId": "proc-1", "camundaBusinessKey": "bk-1"},
        )
        defaults.update(overrides)
        return Delivery(**defaults)

    return _make


@pytest.fixture
def mock_engine() -> AsyncMock:
    """A mock ProcessEngineClient with async start/stop/fetch/update."""
    return AsyncMock(spec=ProcessEngineClient)


@pytest.fixture
def fake_sleep():
    """Async sleep replacement that records requested delays."""
    delays: list[float] = []

    async def _sleep(seconds: float) -> None:
        delays.append(seconds)

    _sleep.delays = delays  # type: ignore[attr-defined]
    return _sleep
