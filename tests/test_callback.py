"""
Test webhook callback

Tests for:
- webhook_url 없는 작업은 전송하지 않음
- 성공 / 서버 에러 재시도 / 연결 에러
- 디스패처가 종료 작업마다 전송
"""

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from assetgen.dispatcher import Dispatcher, send_job_callback
from assetgen.jobs import state_machine
from assetgen.jobs.models import Job, JobType
from assetgen.stages import build_handlers
from conftest import FakeVisionClient


def make_session(status=200, post_side_effect=None):
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.text = AsyncMock(return_value="internal error")
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    mock_session = AsyncMock()
    if post_side_effect is not None:
        mock_session.post = MagicMock(side_effect=post_side_effect)
    else:
        mock_session.post = MagicMock(return_value=mock_response)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)
    return mock_session


def failed_job(webhook_url="http://api.example.com/callback"):
    job = Job(type=JobType.MESH, input={"mode": "single_image"}, webhook_url=webhook_url)
    state_machine.record_created(job)
    state_machine.fail(job, "ReconstructionFailed: no mesh")
    return job


class TestSendJobCallback:
    """send_job_callback 함수 테스트"""

    @pytest.mark.asyncio
    async def test_no_webhook(self):
        """webhook_url이 없으면 전송 안 함"""
        with patch("assetgen.dispatcher.callback.aiohttp.ClientSession") as mock_cls:
            assert await send_job_callback(failed_job(webhook_url=None)) is False
        mock_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_successful_callback(self):
        """성공적인 callback 전송, 작업 레코드 전체를 전송"""
        session = make_session(200)
        job = failed_job()

        with patch("assetgen.dispatcher.callback.aiohttp.ClientSession", return_value=session):
            assert await send_job_callback(job) is True

        args, kwargs = session.post.call_args
        assert args[0] == "http://api.example.com/callback"
        assert kwargs["json"]["id"] == job.id
        assert kwargs["json"]["status"] == "failed"
        assert kwargs["json"]["error"].startswith("ReconstructionFailed")

    @pytest.mark.asyncio
    async def test_server_error_retries(self):
        """서버 에러 시 재시도 후 False"""
        session = make_session(500)

        with patch("assetgen.dispatcher.callback.aiohttp.ClientSession", return_value=session):
            assert await send_job_callback(failed_job(), retry_count=1) is False

        assert session.post.call_count == 2

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """연결 에러 시 재시도"""
        session = make_session(post_side_effect=aiohttp.ClientError("Connection refused"))

        with patch("assetgen.dispatcher.callback.aiohttp.ClientSession", return_value=session):
            assert await send_job_callback(failed_job(), retry_count=2) is False

        assert session.post.call_count == 3


class TestDispatcherCallback:
    """디스패처 종료 처리 시 webhook 전송"""

    @pytest.mark.asyncio
    async def test_terminal_job_triggers_callback(self, artifacts, job_store):
        dispatcher = Dispatcher(job_store, build_handlers(artifacts, FakeVisionClient()))
        with patch("assetgen.dispatcher.dispatcher.send_job_callback", new_callable=AsyncMock) as mock_send:
            await dispatcher.start()
            try:
                job_id = await dispatcher.enqueue(
                    "render", {"mesh_id": "missing"}, webhook_url="http://hook"
                )
                job = await dispatcher.wait_for(job_id, timeout=10)
            finally:
                await dispatcher.shutdown()

        mock_send.assert_called_once()
        assert mock_send.call_args[0][0].id == job.id

    @pytest.mark.asyncio
    async def test_no_webhook_no_callback(self, artifacts, job_store):
        dispatcher = Dispatcher(job_store, build_handlers(artifacts, FakeVisionClient()))
        with patch("assetgen.dispatcher.dispatcher.send_job_callback", new_callable=AsyncMock) as mock_send:
            await dispatcher.start()
            try:
                job_id = await dispatcher.enqueue("render", {"mesh_id": "missing"})
                await dispatcher.wait_for(job_id, timeout=10)
            finally:
                await dispatcher.shutdown()

        mock_send.assert_not_called()
