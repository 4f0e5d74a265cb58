import asyncio
import logging
import traceback

import aiohttp

from core.config import settings

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 4000


async def send_alert(message, channel="distribution"):
    try:
        if channel == "distribution":
            g_id = settings.DISTRIBUTION_ALERTS_GROUP_CHATID
        elif channel == "error":
            g_id = settings.SYSTEM_ERROR_ALERTS_GROUP_CHATID
        else:
            raise ValueError(f"Unknown alert channel {channel}")

        if not settings.TELEGRAM_TOKEN or not g_id:
            logger.debug("Telegram alerts not configured, skipping %s alert", channel)
            return

        await _send_v2(g_id, message)
    except Exception as e:
        logger.error(f"Error sending alert: {e}")
        logger.error(traceback.format_exc())


def send_alert_sync(message, channel="distribution"):
    """Blocking wrapper for callers without a running event loop."""
    asyncio.run(send_alert(message, channel=channel))


def split_message(msg, max_length=MAX_MESSAGE_LENGTH):
    if len(msg) <= max_length:
        return [msg]

    parts = []
    while msg:
        if len(msg) > max_length:
            split_index = msg[:max_length].rfind("\n")
            if split_index <= 0:
                split_index = max_length
            current_msg = msg[:split_index]
            msg = msg[split_index:].lstrip()
            if current_msg.count("<pre>") > current_msg.count("</pre>"):
                current_msg += "</pre>"
                msg = "<pre>" + msg
        else:
            current_msg = msg
            msg = ""
        parts.append(current_msg)
    return parts


async def _send_v2(chat_id, msg, parse_mode="HTML"):
    """
    Send message via Telegram API, split when longer than the API allows
    Args:
        chat_id: Chat ID to send message to
        msg: Message content
        parse_mode: "HTML" or "MarkdownV2"
    """
    base_url = f"https://api.telegram.org/bot{settings.TELEGRAM_TOKEN}/sendMessage"
    parts = split_message(msg)

    async with aiohttp.ClientSession() as session:
        for i, message_part in enumerate(parts, 1):
            if i > 1:
                message_part = f"<i>(Continued from previous message...)</i>\n\n{message_part}"

            payload = {"chat_id": chat_id, "text": message_part, "parse_mode": parse_mode}
            async with session.post(base_url, json=payload) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.error(f"Failed to send message part {i}: {error_text}")
