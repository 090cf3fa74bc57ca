"""Example email job."""

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from durable_jobs.job import Job
from durable_jobs.registry import job_registry

logger = logging.getLogger(__name__)

Mailer = Callable[[str, str, str, str], Awaitable[Any]]


@job_registry.register(name="examples.send_email")
class SendEmailJob(Job):
    """
    Send one email.

    Data: ``{"to", "subject", "body", "from"?}``. Missing fields are a
    caller bug, so validation errors are never retried.
    """

    queue = "emails"
    timeout = 120

    # Replace with a coroutine that talks to your mail provider
    mailer: Optional[Mailer] = None

    async def handle(self, data: Dict[str, Any]) -> Dict[str, Any]:
        missing = [key for key in ("to", "subject", "body") if not (data or {}).get(key)]
        if missing:
            raise ValueError(f"Email job requires {', '.join(missing)}")

        to = data["to"]
        sender = data.get("from", "noreply@example.com")
        logger.info(f"Sending email to {to}, subject={data['subject']!r}")

        if self.mailer is not None:
            await self.mailer(to, sender, data["subject"], data["body"])

        return {
            "status": "sent",
            "to": to,
            "sent_at": datetime.now(timezone.utc).isoformat(),
        }

    def should_retry(self, attempts: int, error: BaseException) -> bool:
        if isinstance(error, ValueError):
            return False
        return super().should_retry(attempts, error)

    async def failed(self, error: BaseException, data: Any) -> None:
        to = (data or {}).get("to", "unknown")
        logger.error(f"Email job failed permanently for {to}: {error}")
