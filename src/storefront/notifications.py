"""Client for the outbound mail relay used by the contact form.

The relay is an EmailJS compatible HTTP endpoint: each message names a
service, a template and the template parameters. A contact submission sends
one notification to the site admin and, when configured, an auto-reply to
the sender.
"""

from __future__ import annotations

import logging
from typing import Dict, List

import requests

from .config import Settings, settings

logger = logging.getLogger(__name__)


def _templates(config: Settings) -> List[str]:
    templates = [config.mail_template_id]
    if config.mail_autoreply_template_id:
        templates.append(config.mail_autoreply_template_id)
    return templates


def is_configured(config: Settings = settings) -> bool:
    return bool(config.mail_service_id and config.mail_template_id and config.mail_public_key)


def send_message(template_id: str, params: Dict[str, str], config: Settings = settings) -> None:
    """Post a single templated message to the relay.

    Raises ``requests.RequestException`` if the relay rejects the message or
    cannot be reached.
    """
    response = requests.post(
        config.mail_relay_url,
        json={
            "service_id": config.mail_service_id,
            "template_id": template_id,
            "user_id": config.mail_public_key,
            "template_params": params,
        },
        timeout=config.mail_timeout,
    )
    response.raise_for_status()


def send_contact_message(
    name: str, email: str, message: str, role: str = "USER", config: Settings = settings
) -> bool:
    """Relay a contact form submission.

    Returns ``True`` when every message was accepted by the relay.
    """
    if not is_configured(config):
        logger.warning("mail relay not configured, contact message from %s dropped", email)
        return False

    params = {
        "role": role,
        "user_name": name,
        "user_email": email,
        "message": message,
    }
    try:
        for template_id in _templates(config):
            send_message(template_id, params, config)
    except requests.RequestException as exc:
        logger.error("failed to relay contact message from %s", email, exc_info=exc)
        return False
    logger.info("relayed contact message from %s", email)
    return True
