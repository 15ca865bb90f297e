"""
Webhook Callback

작업이 종료 상태가 되면 job.webhook_url로 작업 레코드를 POST합니다.
전송 실패는 작업 상태에 영향을 주지 않습니다.
"""

import asyncio
import logging
from typing import Optional

import aiohttp

from assetgen.config import Config
from assetgen.jobs.models import Job

logger = logging.getLogger(__name__)


async def send_job_callback(
    job: Job,
    timeout_seconds: Optional[int] = None,
    retry_count: Optional[int] = None,
) -> bool:
    """
    Webhook URL로 작업 결과 전송.

    Returns:
        True if callback succeeded, False otherwise
    """
    if not job.webhook_url:
        return False

    timeout_seconds = timeout_seconds or Config.CALLBACK_TIMEOUT_SECONDS
    retry_count = Config.CALLBACK_RETRY_COUNT if retry_count is None else retry_count
    payload = job.to_dict()

    logger.info(f"[Callback] Sending job={job.id} status={job.status.value} to {job.webhook_url}")

    for attempt in range(retry_count + 1):
        try:
            timeout = aiohttp.ClientTimeout(total=timeout_seconds)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    job.webhook_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                ) as response:
                    if 200 <= response.status < 300:
                        logger.info(f"[Callback] Success for job={job.id}, status={response.status}")
                        return True
                    response_text = await response.text()
                    logger.warning(
                        f"[Callback] Failed for job={job.id}, "
                        f"status={response.status}, response={response_text[:200]}"
                    )

        except aiohttp.ClientError as e:
            logger.warning(
                f"[Callback] Network error for job={job.id}, "
                f"attempt={attempt + 1}/{retry_count + 1}: {e}"
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"[Callback] Timeout for job={job.id}, "
                f"attempt={attempt + 1}/{retry_count + 1}"
            )

        if attempt < retry_count:
            logger.info(f"[Callback] Retrying job={job.id}...")

    logger.error(f"[Callback] All retries failed for job={job.id}")
    return False
