# Overview: Outbound e-mail through the Resend HTTP API.

from __future__ import annotations

import httpx
from flask import current_app

from .integrations import build_client


RESEND_API = "https://api.resend.com/emails"


def reset_email_html(reset_link: str) -> str:
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #84cc16;">SuperSave Password Reset</h2>
  <p>You requested to reset your password. Click the link below to set a new password:</p>
  <p style="margin: 24px 0;">
    <a href="{reset_link}" style="background-color: #84cc16; color: #000; padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block;">
      Reset Password
    </a>
  </p>
  <p>Or copy and paste this link into your browser:</p>
  <p style="color: #666; word-break: break-all;">{reset_link}</p>
  <p style="color: #999; font-size: 12px; margin-top: 32px;">
    This link expires in 1 hour. If you didn't request this, please ignore this email.
  </p>
</div>
"""


def send_email(to: str, subject: str, html: str, *, client: httpx.Client | None = None) -> bool:
    """
    Send one e-mail. Returns False (and logs) when Resend is not configured
    or rejects the message; callers treat delivery as best effort.
    """
    api_key = current_app.config.get("RESEND_API_KEY")
    if not api_key:
        current_app.logger.warning("RESEND_API_KEY is not configured; e-mail to %s not sent", to)
        return False

    http = build_client(client)
    try:
        response = http.post(
            RESEND_API,
            json={
                "from": current_app.config["MAIL_FROM"],
                "to": [to],
                "subject": subject,
                "html": html,
            },
            headers={"Authorization": f"Bearer {api_key}"},
        )
    except httpx.RequestError:
        current_app.logger.exception("Failed to contact Resend")
        return False
    finally:
        if client is None:
            http.close()

    if response.status_code >= 400:
        current_app.logger.warning("Resend API error %s: %s", response.status_code, response.text)
        return False

    current_app.logger.info("Sent e-mail via Resend (id=%s)", (response.json() or {}).get("id"))
    return True
