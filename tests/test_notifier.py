import smtplib
from datetime import date

from recipe_enricher.models import (
    ClassificationResult,
    EnrichmentItem,
    FieldChange,
    ImageSuggestion,
    RecipeRecord,
    SuggestedChangeSet,
)
from recipe_enricher.notifier import EmailNotifier, SmtpSettings, render_review_email


def _item() -> EnrichmentItem:
    recipe = RecipeRecord(id="recipe-0001", title="Mac & Cheese <Deluxe>", link="https://example.com/mac")
    changes = SuggestedChangeSet(
        fields={
            "meal": FieldChange(current=None, suggested="Main Dish"),
            "tags": FieldChange(current=[], suggested=["Baked", "Creamy"]),
        },
        image=ImageSuggestion(suggested="https://example.com/mac.jpg"),
    )
    classification = ClassificationResult(meal="Main Dish", confidence=0.85, reasoning="Baked pasta dish.")
    return EnrichmentItem(recipe=recipe, extracted=None, classification=classification, changes=changes)


class _DummySMTP:
    instances: list["_DummySMTP"] = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.events = []
        self.sent = []
        _DummySMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.events.append("quit")
        return False

    def starttls(self):
        self.events.append("starttls")

    def login(self, user, password):
        self.events.append(("login", user, password))

    def send_message(self, message):
        self.sent.append(message)


class _FailingSMTP(_DummySMTP):
    def login(self, user, password):
        raise smtplib.SMTPAuthenticationError(535, b"bad credentials")


def _settings(**overrides) -> SmtpSettings:
    values = {"user": "bot@example.com", "password": "app-pass", "recipient": "me@example.com"}
    values.update(overrides)
    return SmtpSettings(**values)


def test_render_review_email_escapes_and_summarizes():
    body = render_review_email(
        [_item()],
        {"totalRecipes": 1, "totalSuggestions": 3, "imagesFound": 1},
        today=date(2026, 10, 19),
    )

    assert "2026-10-19" in body
    assert "Mac &amp; Cheese &lt;Deluxe&gt;" in body
    assert "<strong>Total Suggestions:</strong> 3" in body
    assert "Confidence:</strong> 85%" in body
    assert "Baked, Creamy" in body
    assert 'src="https://example.com/mac.jpg"' in body


def test_render_review_email_without_items():
    body = render_review_email([], {}, today=date(2026, 10, 19))
    assert "No recipes needed enrichment this week." in body


def test_send_review_uses_starttls_and_login():
    _DummySMTP.instances.clear()
    notifier = EmailNotifier(_settings(), smtp_factory=_DummySMTP)

    assert notifier.send_review([_item()], {"totalRecipes": 1}) is True

    smtp = _DummySMTP.instances[-1]
    assert (smtp.host, smtp.port) == ("smtp.gmail.com", 587)
    assert smtp.events == ["starttls", ("login", "bot@example.com", "app-pass"), "quit"]
    message = smtp.sent[0]
    assert message["Subject"] == "Weekly Recipe Review - 1 recipes processed"
    assert message["To"] == "me@example.com"


def test_send_error_sends_plain_text():
    _DummySMTP.instances.clear()
    notifier = EmailNotifier(_settings(), smtp_factory=_DummySMTP)

    assert notifier.send_error(RuntimeError("Notion is down")) is True

    message = _DummySMTP.instances[-1].sent[0]
    assert message["Subject"] == "Recipe Enrichment Error"
    assert "Notion is down" in message.get_content()


def test_missing_credentials_skip_sending():
    _DummySMTP.instances.clear()
    notifier = EmailNotifier(_settings(password=""), smtp_factory=_DummySMTP)

    assert notifier.send_review([_item()], {}) is False
    assert _DummySMTP.instances == []


def test_smtp_failures_are_logged_not_raised():
    notifier = EmailNotifier(_settings(), smtp_factory=_FailingSMTP)

    assert notifier.send_error(RuntimeError("boom")) is False


def test_smtp_settings_from_env(monkeypatch):
    monkeypatch.setenv("EMAIL_USER", "bot@example.com")
    monkeypatch.setenv("EMAIL_PASS", "secret")
    monkeypatch.setenv("RECIPIENT_EMAIL", "me@example.com")
    monkeypatch.setenv("SMTP_PORT", "2525")

    settings = SmtpSettings.from_env()

    assert settings.complete
    assert settings.port == 2525
