"""Tests for camunda_connector.retry."""

from __future__ import annotations

import asyncio

import pytest
from pika.exceptions import AMQPConnectionError, StreamLostError
from tenacity import RetryError

from camunda_connector.config import RabbitMQConfig
from camunda_connector.retry import reconnect_policy


async def _run(policy, fn):
    async for attempt in policy:
        with attempt:
            await fn()


class TestReconnectPolicy:
    @pytest.mark.asyncio
    async def test_retries_transport_errors_with_fixed_delay(self, rabbitmq_config: RabbitMQConfig, fake_sleep):
        shutdown = asyncio.Event()
        call_count = 0

        async def session():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise StreamLostError("connection reset")
            shutdown.set()

        await _run(reconnect_policy(rabbitmq_config, shutdown, sleep=fake_sleep), session)

        assert call_count == 3
        assert fake_sleep.delays == [2.5, 2.5]

    @pytest.mark.asyncio
    async def test_connection_refused_is_retried(self, rabbitmq_config: RabbitMQConfig, fake_sleep):
        shutdown = asyncio.Event()
        call_count = 0

        async def session():
            nonlocal call_count
            call_count += 1
            if call_count == 1:
                raise AMQPConnectionError("refused")
            if call_count == 2:
                raise ConnectionRefusedError("refused")
            shutdown.set()

        await _run(reconnect_policy(rabbitmq_config, shutdown, sleep=fake_sleep), session)
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_never_gives_up_on_its_own(self, rabbitmq_config: RabbitMQConfig, fake_sleep):
        shutdown = asyncio.Event()
        call_count = 0

        async def session():
            nonlocal call_count
            call_count += 1
            if call_count < 50:
                raise StreamLostError("flapping")
            shutdown.set()

        await _run(reconnect_policy(rabbitmq_config, shutdown, sleep=fake_sleep), session)
        assert call_count == 50

    @pytest.mark.asyncio
    async def test_restarts_when_consumer_stops(self, rabbitmq_config: RabbitMQConfig, fake_sleep):
        shutdown = asyncio.Event()
        call_count = 0

        async def session():
            nonlocal call_count
            call_count += 1
            if call_count == 2:
                shutdown.set()

        await _run(reconnect_policy(rabbitmq_config, shutdown, sleep=fake_sleep), session)
        assert call_count == 2
        assert fake_sleep.delays == [2.5]

    @pytest.mark.asyncio
    async def test_other_errors_propagate_immediately(self, rabbitmq_config: RabbitMQConfig, fake_sleep):
        call_count = 0

        async def session():
            nonlocal call_count
            call_count += 1
            raise TypeError("bug")

        with pytest.raises(TypeError):
            await _run(reconnect_policy(rabbitmq_config, asyncio.Event(), sleep=fake_sleep), session)
        assert call_count == 1
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_shutdown_during_failure_stops(self, rabbitmq_config: RabbitMQConfig, fake_sleep):
        shutdown = asyncio.Event()

        async def session():
            shutdown.set()
            raise StreamLostError("connection reset")

        with pytest.raises(RetryError):
            await _run(reconnect_policy(rabbitmq_config, shutdown, sleep=fake_sleep), session)
        assert fake_sleep.delays == []
