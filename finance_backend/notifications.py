from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
import logging
import smtplib
from urllib.parse import quote

from finance_backend.records import ensure_utc
from finance_backend.settings import SmtpSettings

logger = logging.getLogger(__name__)

DEFAULT_SENDER_NAME = "Catatan Keuangan"


@dataclass(frozen=True)
class SmtpNotifier:
    settings: SmtpSettings
    timeout: int = 30

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.host.strip() and self.settings.from_email.strip())

    def send_password_reset_token(self, email: str, token: str, expires_at: datetime) -> bool:
        """Email a reset token. Returns False when SMTP is not configured."""
        if not self.is_configured:
            logger.warning(
                "SMTP configuration is incomplete. Password reset email for %s was not sent.",
                email,
            )
            return False

        message = self.build_reset_message(email, token, expires_at)
        try:
            with smtplib.SMTP(self.settings.host, self.settings.port, timeout=self.timeout) as server:
                if self.settings.enable_ssl:
                    server.starttls()
                if self.settings.username:
                    server.login(self.settings.username, self.settings.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError):
            logger.exception("Failed to send password reset email to %s", email)
            raise

        logger.info("Password reset token email sent to %s", email)
        return True

    def build_reset_message(self, email: str, token: str, expires_at: datetime) -> MIMEMultipart:
        display_name = self.settings.from_name.strip() or DEFAULT_SENDER_NAME
        expiry_display = ensure_utc(expires_at).strftime("%d %b %Y %H:%M") + " UTC"
        reset_link = self.reset_link(token)

        link_line = f"\nOr open this link: {reset_link}\n" if reset_link else ""
        plain_text = (
            "Hello,\n\n"
            "We received a request to reset the password for your account.\n\n"
            f"Your reset token: {token}\n"
            f"Valid until: {expiry_display}\n"
            f"{link_line}\n"
            "Copy the token above into the app and follow the password reset steps.\n"
            "If you did not request a password reset, you can ignore this email.\n\n"
            f"Thank you,\n{display_name}"
        )

        link_html = (
            f'<p><a class="cta" href="{escape(reset_link)}">Reset password</a></p>'
            if reset_link
            else ""
        )
        html_body = f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <title>Password Reset Token</title>
  <style>
    body {{ font-family: 'Segoe UI', Arial, sans-serif; background-color: #f5f7fb; margin: 0; padding: 24px; color: #1f2937; }}
    .wrapper {{ max-width: 520px; margin: 0 auto; background: #ffffff; border-radius: 12px; overflow: hidden; }}
    .header {{ background-color: #2563eb; padding: 24px; color: #ffffff; }}
    .content {{ padding: 24px; line-height: 1.6; }}
    .token {{ display: inline-block; margin: 16px 0; padding: 12px 18px; background-color: #0f172a; color: #ffffff; font-weight: 600; letter-spacing: 0.12em; border-radius: 8px; }}
    .cta {{ display: inline-block; padding: 12px 18px; background-color: #2563eb; color: #ffffff; text-decoration: none; border-radius: 8px; }}
    .footer {{ padding: 18px 24px; background-color: #f8fafc; color: #64748b; font-size: 13px; }}
  </style>
</head>
<body>
  <div class="wrapper">
    <div class="header"><h1>{escape(display_name)}</h1></div>
    <div class="content">
      <p>Hello,</p>
      <p>We received a request to reset the password for your account.</p>
      <p>Use the following token to continue:</p>
      <div class="token">{escape(token)}</div>
      <p><strong>Valid until:</strong> {expiry_display}</p>
      {link_html}
      <p>If you did not request a password reset, you can ignore this email.</p>
    </div>
    <div class="footer"><p>Thank you,</p><p>{escape(display_name)}</p></div>
  </div>
</body>
</html>"""

        message = MIMEMultipart("alternative")
        message["From"] = f"{display_name} <{self.settings.from_email}>"
        message["To"] = email
        message["Subject"] = f"{display_name} - Password Reset Token"
        message.attach(MIMEText(plain_text, "plain", "utf-8"))
        message.attach(MIMEText(html_body, "html", "utf-8"))
        return message

    def reset_link(self, token: str) -> str:
        base = self.settings.reset_link_base.strip()
        if not base:
            return ""
        separator = "&" if "?" in base else "?"
        return f"{base}{separator}token={quote(token)}"
