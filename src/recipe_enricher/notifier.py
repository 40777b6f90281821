"""HTML review email sent after scheduled enrichment runs."""
from __future__ import annotations

import html
import logging
import smtplib
from dataclasses import dataclass
from datetime import date
from email.message import EmailMessage
from typing import Any, Callable, Optional

from .config import env_or_config, require_int
from .models import EnrichmentItem

logger = logging.getLogger(__name__)

DEFAULT_SMTP_HOST = "smtp.gmail.com"
DEFAULT_SMTP_PORT = 587
REVIEW_SUBJECT = "Weekly Recipe Review - {count} recipes processed"
ERROR_SUBJECT = "Recipe Enrichment Error"

_STYLE = """
body { font-family: Arial, sans-serif; max-width: 800px; margin: 0 auto; padding: 20px; }
.header { background: #f8f9fa; padding: 20px; border-radius: 8px; margin-bottom: 30px; }
.change-item { margin: 10px 0; padding: 10px; background: #f1f3f4; border-radius: 4px; }
.stats { background: #e8f5e8; padding: 15px; border-radius: 8px; margin-bottom: 20px; }
.recipe-review { margin-bottom: 30px; padding: 20px; border: 1px solid #ddd; border-radius: 8px; }
"""


def _display(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value) or "Empty"
    if value is None or value == "":
        return "Empty"
    return str(value)


def _change_html(label: str, current: Any, suggested: Any) -> str:
    return (
        '<div class="change-item">'
        f"<h4>{html.escape(label.replace('_', ' ').upper())}</h4>"
        f"<p><strong>Current:</strong> {html.escape(_display(current))}</p>"
        f"<p><strong>Suggested:</strong> {html.escape(_display(suggested))}</p>"
        "</div>"
    )


def _recipe_html(item: EnrichmentItem) -> str:
    changes = [_change_html(name, change.current, change.suggested) for name, change in item.changes.fields.items()]
    if item.changes.title is not None:
        changes.append(_change_html("title", item.changes.title.current, item.changes.title.suggested))
    link = html.escape(item.recipe.link or "")
    parts = [
        '<div class="recipe-review">',
        f"<h3>{html.escape(item.recipe.title)}</h3>",
        f'<p><strong>Source:</strong> <a href="{link}">{link or "No link"}</a></p>',
        f"<p><strong>Confidence:</strong> {item.classification.confidence * 100:.0f}%</p>",
        f"<p><strong>Reasoning:</strong> {html.escape(item.classification.reasoning)}</p>",
        '<div class="suggested-changes"><h4>Suggested Changes:</h4>',
        "".join(changes) or "<p>No changes suggested</p>",
        "</div>",
    ]
    if item.changes.image is not None:
        src = html.escape(item.changes.image.suggested)
        parts.append(
            '<div class="extracted-image"><h4>Found Image:</h4>'
            f'<img src="{src}" style="max-width: 200px; border-radius: 4px;" alt="Recipe image"></div>'
        )
    parts.append("</div>")
    return "".join(parts)


def render_review_email(items: list[EnrichmentItem], stats: dict[str, Any], today: Optional[date] = None) -> str:
    today = today or date.today()
    recipes_html = "".join(_recipe_html(item) for item in items) or "<p>No recipes needed enrichment this week.</p>"
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>Weekly Recipe Review</title><style>{_STYLE}</style></head><body>"
        '<div class="header"><h1>Weekly Recipe Review</h1>'
        f"<p><strong>Date:</strong> {today.isoformat()}</p></div>"
        '<div class="stats"><h3>Summary</h3>'
        f"<p><strong>Recipes Processed:</strong> {stats.get('totalRecipes', len(items))}</p>"
        f"<p><strong>Total Suggestions:</strong> {stats.get('totalSuggestions', 0)}</p>"
        f"<p><strong>Images Found:</strong> {stats.get('imagesFound', 0)}</p>"
        "</div>"
        f'<div class="recipes">{recipes_html}</div>'
        '<div class="footer"><p><strong>Next Steps:</strong></p><ol>'
        "<li>Review the suggestions above</li>"
        "<li>Apply the changes you want from the review page or directly in Notion</li>"
        "<li>Updated recipes are skipped automatically in future runs</li>"
        "</ol></div></body></html>"
    )


@dataclass
class SmtpSettings:
    user: str
    password: str
    recipient: str
    host: str = DEFAULT_SMTP_HOST
    port: int = DEFAULT_SMTP_PORT

    @classmethod
    def from_env(cls) -> "SmtpSettings":
        return cls(
            user=str(env_or_config("EMAIL_USER", "email.user", "") or "").strip(),
            password=str(env_or_config("EMAIL_PASS", "email.password", "") or "").strip(),
            recipient=str(env_or_config("RECIPIENT_EMAIL", "email.recipient", "") or "").strip(),
            host=str(env_or_config("SMTP_HOST", "email.smtp_host", DEFAULT_SMTP_HOST)).strip(),
            port=env_or_config("SMTP_PORT", "email.smtp_port", DEFAULT_SMTP_PORT, lambda v: require_int(v, "SMTP_PORT")),
        )

    @property
    def complete(self) -> bool:
        return bool(self.user and self.password and self.recipient)


class EmailNotifier:
    """Send review and error emails; failures are logged, never raised."""

    def __init__(self, settings: SmtpSettings, smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP):
        self.settings = settings
        self._smtp_factory = smtp_factory

    def _send(self, subject: str, *, html_body: Optional[str] = None, text_body: Optional[str] = None) -> bool:
        if not self.settings.complete:
            logger.info("Email credentials not configured; skipping '%s'", subject)
            return False
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.settings.user
        message["To"] = self.settings.recipient
        message.set_content(text_body or "This message requires an HTML-capable mail client.")
        if html_body is not None:
            message.add_alternative(html_body, subtype="html")
        try:
            with self._smtp_factory(self.settings.host, self.settings.port, timeout=30) as smtp:
                smtp.starttls()
                smtp.login(self.settings.user, self.settings.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Error sending email '%s': %s", subject, exc)
            return False
        logger.info("Email notification sent: %s", subject)
        return True

    def send_review(self, items: list[EnrichmentItem], stats: dict[str, Any]) -> bool:
        return self._send(
            REVIEW_SUBJECT.format(count=len(items)),
            html_body=render_review_email(items, stats),
        )

    def send_error(self, error: BaseException) -> bool:
        return self._send(ERROR_SUBJECT, text_body=f"An error occurred during recipe enrichment: {error}")
