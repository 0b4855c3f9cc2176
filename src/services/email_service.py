"""
Templated email transport over Amazon SES.

The core only needs one operation: send a named template to a recipient
with variables, and learn whether it went out.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from config.settings import Settings
from utils.logging_config import get_logger

logger = get_logger(__name__)


class EmailSender(Protocol):
    def send_templated_email(
        self, template_id: str, recipient: str, variables: Dict[str, Any]
    ) -> bool: ...


class EmailService:
    """SES-backed EmailSender with caller-bounded timeouts."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or Settings.from_environment()
        timeout = self.settings.email_timeout_seconds
        self.client = boto3.client(
            "ses",
            region_name=self.settings.aws_region,
            config=Config(
                connect_timeout=timeout,
                read_timeout=timeout,
                retries={"max_attempts": 2, "mode": "standard"},
            ),
        )

    def send_templated_email(
        self, template_id: str, recipient: str, variables: Dict[str, Any]
    ) -> bool:
        """Send one templated email. Returns False instead of raising on transport errors."""
        try:
            response = self.client.send_templated_email(
                Source=self.settings.email_sender,
                Destination={"ToAddresses": [recipient]},
                Template=template_id,
                TemplateData=json.dumps(variables, default=str),
            )
        except (BotoCoreError, ClientError) as exc:
            logger.warning(
                "Templated email failed",
                extra={"template": template_id, "error": str(exc)},
            )
            return False

        logger.info(
            "Templated email sent",
            extra={"template": template_id, "message_id": response.get("MessageId")},
        )
        return True
