"""Send the topic digest via SMTP as HTML with a plain-text fallback."""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import markdown

logger = logging.getLogger(__name__)

_HTML_WRAPPER = """\
<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"></head>
<body style="margin:0; padding:24px 12px; background-color:#f4f4f5;">
<div style="max-width:600px; margin:0 auto; background:#ffffff;
            border:1px solid #e4e4e7; border-radius:8px; padding:28px;
            font-family:-apple-system,'Segoe UI',Roboto,Helvetica,Arial,sans-serif;
            font-size:15px; line-height:1.6; color:#18181b;">
{body}
</div>
</body>
</html>
"""

# Inline styles per tag; most mail clients drop <style> blocks
_TAG_STYLES = {
    "h1": "font-size:22px; margin:0 0 12px 0; color:#18181b;",
    "h2": (
        "font-size:17px; margin:28px 0 8px 0; color:#27272a; "
        "border-bottom:1px solid #e4e4e7; padding-bottom:4px;"
    ),
    "h3": "font-size:15px; margin:18px 0 4px 0; color:#3f3f46;",
    "a": "color:#2563eb; text-decoration:none;",
    "ul": "padding-left:18px; margin:6px 0;",
    "li": "margin-bottom:4px;",
    "p": "margin:6px 0;",
    "em": "color:#71717a;",
}


def digest_html(md_text: str) -> str:
    """Convert the Markdown digest to email-safe HTML."""
    html = markdown.markdown(md_text, output_format="html")
    for tag, style in _TAG_STYLES.items():
        html = html.replace(f"<{tag}>", f'<{tag} style="{style}">')
        html = html.replace(f"<{tag} ", f'<{tag} style="{style}" ')
    return _HTML_WRAPPER.format(body=html)


def build_message(
    *,
    sender: str,
    recipients: list[str],
    subject: str,
    body_text: str,
) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["From"] = sender
    msg["To"] = ", ".join(recipients)
    msg["Subject"] = subject
    msg.attach(MIMEText(body_text, "plain", "utf-8"))
    msg.attach(MIMEText(digest_html(body_text), "html", "utf-8"))
    return msg


def send_digest(
    *,
    smtp_host: str,
    smtp_port: int,
    username: str,
    password: str,
    to_addrs: list[str] | str,
    subject: str,
    body_text: str,
) -> None:
    """Send *body_text* (Markdown) to *to_addrs* using STARTTLS."""
    recipients = [to_addrs] if isinstance(to_addrs, str) else list(to_addrs)
    msg = build_message(
        sender=username, recipients=recipients, subject=subject, body_text=body_text
    )

    logger.info(
        "Sending digest to %s via %s:%d",
        ", ".join(recipients), smtp_host, smtp_port,
    )
    with smtplib.SMTP(smtp_host, smtp_port, timeout=30) as server:
        server.ehlo()
        server.starttls()
        server.ehlo()
        server.login(username, password)
        server.sendmail(username, recipients, msg.as_string())

    logger.info("Digest sent to %s", ", ".join(recipients))
