"""Notification fan-out: Slack, WhatsApp (Twilio) and e-mail.

Each channel reads its credentials from the environment and is skipped when
they are missing. A failing channel never affects the others.
"""

from __future__ import annotations

import asyncio
import logging
import os
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Mapping, Optional

import httpx

from sitekeeper.models.config import SiteConfig

logger = logging.getLogger(__name__)


@dataclass
class NotificationResult:
    channel: str
    success: bool
    error: Optional[str] = None


def build_message(site: SiteConfig, pr_url: Optional[str], status: str) -> str:
    icon = "✅ Success" if status == "OK" else f"❌ {status}"
    return (
        "🤖 *Hugo Maintenance Bot*\n\n"
        f"📌 *Site*: {site.title} ({site.website.url})\n"
        f"📊 *Status*: {icon}\n"
        f"🔗 *PR*: {pr_url or 'N/A'}\n\n"
        "_This is an automated message._\n"
    )


async def send_slack(message: str, env: Mapping[str, str], client: httpx.AsyncClient) -> NotificationResult:
    webhook_url = env.get("SLACK_WEBHOOK_URL")
    if not webhook_url:
        logger.warning("SLACK_WEBHOOK_URL is not defined. Skipping Slack notification.")
        return NotificationResult("slack", False, "SLACK_WEBHOOK_URL not defined")
    try:
        resp = await client.post(webhook_url, json={"text": message})
        resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.error("Failed to send Slack notification: %s", e)
        return NotificationResult("slack", False, str(e))
    logger.info("Slack notification sent")
    return NotificationResult("slack", True)


async def send_whatsapp(message: str, env: Mapping[str, str], client: httpx.AsyncClient) -> NotificationResult:
    sid = env.get("TWILIO_ACCOUNT_SID")
    token = env.get("TWILIO_AUTH_TOKEN")
    from_number = env.get("TWILIO_WHATSAPP_FROM")  # e.g. "whatsapp:+14155238886"
    to_number = env.get("TWILIO_WHATSAPP_TO")
    if not (sid and token and from_number and to_number):
        logger.warning("Twilio credentials are missing. Skipping WhatsApp notification.")
        return NotificationResult("whatsapp", False, "Missing Twilio credentials")
    url = f"https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"
    try:
        resp = await client.post(
            url,
            data={"To": to_number, "From": from_number, "Body": message},
            auth=(sid, token),
        )
        resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.error("Failed to send WhatsApp notification: %s", e)
        return NotificationResult("whatsapp", False, str(e))
    logger.info("WhatsApp notification sent via Twilio")
    return NotificationResult("whatsapp", True)


def send_email(subject: str, message: str, env: Mapping[str, str]) -> NotificationResult:
    host = env.get("SMTP_HOST")
    to_addr = env.get("EMAIL_TO") or env.get("SMTP_USER")
    if not host or not to_addr:
        logger.warning("SMTP_HOST or EMAIL_TO is not defined. Skipping e-mail notification.")
        return NotificationResult("email", False, "SMTP not configured")

    msg = EmailMessage()
    msg["Subject"] = f"[Hugo Modules] {subject}"
    msg["From"] = env.get("SMTP_FROM") or env.get("SMTP_USER") or to_addr
    msg["To"] = to_addr
    msg.set_content(message)
    try:
        port = int(env.get("SMTP_PORT") or "587")
    except ValueError:
        logger.error("Invalid SMTP_PORT %r. Skipping e-mail notification.", env.get("SMTP_PORT"))
        return NotificationResult("email", False, f"Invalid SMTP_PORT: {env.get('SMTP_PORT')}")
    try:
        with smtplib.SMTP(host, port, timeout=30) as server:
            server.starttls()
            if env.get("SMTP_USER"):
                server.login(env["SMTP_USER"], env.get("SMTP_PASS", ""))
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send e-mail: %s", e)
        return NotificationResult("email", False, str(e))
    logger.info("E-mail sent to %s", to_addr)
    return NotificationResult("email", True)


async def notify(
    site: SiteConfig,
    pr_url: Optional[str],
    status: str,
    env: Mapping[str, str] | None = None,
) -> list[NotificationResult]:
    """Send the run summary on every configured channel."""
    env = os.environ if env is None else env
    message = build_message(site, pr_url, status)
    subject = f"Module update {status} for {site.title}"
    logger.info("Sending notifications for %s...", site.title)

    async with httpx.AsyncClient(timeout=30.0) as client:
        results = list(await asyncio.gather(
            send_slack(message, env, client),
            send_whatsapp(message, env, client),
            asyncio.to_thread(send_email, subject, message, env),
        ))

    if all(r.success for r in results):
        logger.info("All notifications sent")
    else:
        skipped = [r.channel for r in results if not r.success]
        logger.warning("Some notifications failed or were skipped: %s", ", ".join(skipped))
    return results
