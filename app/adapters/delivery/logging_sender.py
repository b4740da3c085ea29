"""Link sender that only records the delivery attempt.

Default for local development and tests: nothing leaves the process and the
link itself is never logged. Enable ``MAGIC_LINK_EXPOSE_LINKS`` to get the
link back in the API response instead.
"""

from __future__ import annotations

import logging

from app.adapters.delivery.base import AbstractLinkSender
from app.utils.pii import mask_email

logger = logging.getLogger(__name__)


class LoggingLinkSender(AbstractLinkSender):
    def send(self, email: str, link: str) -> None:
        logger.info(
            "magic_link.delivery_logged",
            extra={"email_masked": mask_email(email), "provider": "log"},
        )
