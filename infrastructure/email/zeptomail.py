"""ZeptoMail implementation of EmailProvider.

Sends the one-time verification link that completes a first sign-in.
The HTML body is rendered from templates/emails/verify_login.html.
"""

import os
from typing import Optional

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.in/v1.1/email"
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)


class ZeptoMailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: httpx.AsyncClient,
        app_name: str = "Page of Us",
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._app_name = app_name
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    async def _send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> bool:
        if not self._settings.zepto_api_token:
            log.error("zepto_mail_send_failed", reason="token_not_configured")
            return False

        payload: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [{"email_address": {"address": to_email, "name": to_email}}],
            "subject": subject,
            "htmlbody": html_body,
        }
        if text_body:
            payload["textbody"] = text_body

        token = self._settings.zepto_api_token
        if not token.startswith("Zoho-enczapikey "):
            token = f"Zoho-enczapikey {token}"

        headers = {"Authorization": token, "Content-Type": "application/json"}

        try:
            response = await self._http.post(_ZEPTO_API_URL, json=payload, headers=headers)
        except httpx.HTTPError as e:
            log.error(
                "email_send_error",
                to_email=to_email,
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if response.status_code in (200, 201, 202):
            log.info("email_sent_success", to_email=to_email, subject=subject)
            return True
        log.error(
            "email_sent_failed",
            to_email=to_email,
            subject=subject,
            status_code=response.status_code,
            response=response.text[:200],
        )
        return False

    async def send_login_link(
        self, email: str, link: str, expires_in_minutes: int
    ) -> bool:
        subject = f"Verify your email - {self._app_name}"
        template = self._jinja.get_template("verify_login.html")
        html_body = template.render(
            link=link,
            app_name=self._app_name,
            expires_in_minutes=expires_in_minutes,
        )
        text_body = (
            f"Verify your email - {self._app_name}\n\n"
            f"Open this link to confirm it's you:\n{link}\n\n"
            f"The link expires in {expires_in_minutes} minutes and works once.\n"
            f"After verifying, sign in again."
        )
        return await self._send(email, subject, html_body, text_body)
