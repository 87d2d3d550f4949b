"""Jinja2 rendering of notification titles, messages and emails.

Templates are rendered in a ``SandboxedEnvironment``. The context exposes
the decoded payload variant as ``payload`` alongside ``event_type``,
``entity_id``, ``name`` (recipient display name, email only), ``title`` and
``message``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from jinja2 import TemplateError, select_autoescape
from jinja2.sandbox import SandboxedEnvironment

from notify_service.features.notifications.enums import EventType
from notify_service.features.notifications.exceptions import NotificationError
from notify_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from notify_service.features.notifications.events import EventPayload

_lazy = get_lazy_logger(__name__)

DEFAULT_TITLE = "Notification"

TITLES: dict[str, str] = {
    EventType.TICKET_CREATED: "New Maintenance Ticket",
    EventType.TICKET_ASSIGNED: "Ticket Assigned",
    EventType.TICKET_IN_PROGRESS: "Work Started",
    EventType.TICKET_COMPLETED: "Work Completed",
    EventType.TICKET_CLOSED: "Ticket Closed",
    EventType.TICKET_CANCELLED: "Ticket Cancelled",
    EventType.QUOTE_SUBMITTED: "Quote Received",
    EventType.QUOTE_APPROVED: "Quote Approved",
    EventType.QUOTE_REJECTED: "Quote Rejected",
    EventType.APPOINTMENT_PROPOSED: "Appointment Proposed",
    EventType.APPOINTMENT_CONFIRMED: "Appointment Confirmed",
}

MESSAGES: dict[str, str] = {
    EventType.TICKET_CREATED: (
        "A new maintenance ticket has been created"
        "{% if payload.title %}: {{ payload.title }}{% endif %}"
    ),
    EventType.TICKET_ASSIGNED: (
        "A ticket has been assigned to you{% if payload.title %}: {{ payload.title }}{% endif %}"
    ),
    EventType.TICKET_IN_PROGRESS: "Work has started on your maintenance ticket",
    EventType.TICKET_COMPLETED: "A maintenance ticket has been completed",
    EventType.TICKET_CLOSED: "A maintenance ticket has been closed",
    EventType.TICKET_CANCELLED: "A maintenance ticket has been cancelled",
    EventType.QUOTE_SUBMITTED: (
        "A contractor has submitted a quote for review"
        "{% if payload.amount_minor %}"
        " ({{ '%.2f' | format(payload.amount_minor / 100) }} {{ payload.currency or '' }})"
        "{% endif %}"
    ),
    EventType.QUOTE_APPROVED: "Your quote has been approved. Work can begin.",
    EventType.QUOTE_REJECTED: (
        "Your quote was not approved{% if payload.reason %}: {{ payload.reason }}{% endif %}"
    ),
    EventType.APPOINTMENT_PROPOSED: (
        "An appointment has been proposed"
        "{% if payload.start_at %} for {{ payload.start_at.strftime('%Y-%m-%d %H:%M') }}"
        "{% else %} soon{% endif %}"
    ),
    EventType.APPOINTMENT_CONFIRMED: (
        "Your appointment has been confirmed"
        "{% if payload.start_at %} for {{ payload.start_at.strftime('%Y-%m-%d %H:%M') }}{% endif %}"
    ),
}

DEFAULT_MESSAGE = "Event: {{ event_type }}"

EMAIL_SUBJECT = "{{ title }}"
EMAIL_HTML = "<p>Hi {{ name }},</p><p>{{ message }}</p>"
EMAIL_TEXT = "Hi {{ name }},\n\n{{ message }}\n"


class TemplateRenderError(NotificationError):
    """A notification template could not be rendered."""


@dataclass(frozen=True, slots=True)
class RenderedNotification:
    title: str
    message: str


@dataclass(frozen=True, slots=True)
class RenderedEmail:
    subject: str
    html_body: str
    text_body: str


class TemplateRenderer:
    """Render event-type templates in a sandbox.

    Plain-text templates (titles, messages, email subject and text body) are
    rendered without autoescaping; the HTML body is autoescaped.
    """

    def __init__(
        self,
        *,
        titles: dict[str, str] | None = None,
        messages: dict[str, str] | None = None,
    ) -> None:
        self._titles = titles if titles is not None else TITLES
        self._messages = messages if messages is not None else MESSAGES
        self._text_env = SandboxedEnvironment(
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._html_env = SandboxedEnvironment(
            autoescape=select_autoescape(default_for_string=True),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def title_for(self, event_type: str) -> str:
        return self._titles.get(event_type, DEFAULT_TITLE)

    def render_notification(
        self,
        event_type: str,
        entity_id: str,
        payload: EventPayload,
    ) -> RenderedNotification:
        """Render the in-app title and message for an event.

        Raises:
            TemplateRenderError: If a template fails to render
        """
        context = {"event_type": event_type, "entity_id": entity_id, "payload": payload}
        template = self._messages.get(event_type, DEFAULT_MESSAGE)
        message = self._render(self._text_env, event_type, template, context)
        return RenderedNotification(title=self.title_for(event_type), message=message)

    def render_email(
        self,
        event_type: str,
        entity_id: str,
        payload: EventPayload,
        *,
        name: str,
    ) -> RenderedEmail:
        """Render subject, HTML and text bodies for an event email.

        Raises:
            TemplateRenderError: If a template fails to render
        """
        rendered = self.render_notification(event_type, entity_id, payload)
        context: dict[str, Any] = {
            "event_type": event_type,
            "entity_id": entity_id,
            "payload": payload,
            "name": name,
            "title": rendered.title,
            "message": rendered.message,
        }
        return RenderedEmail(
            subject=self._render(self._text_env, event_type, EMAIL_SUBJECT, context),
            html_body=self._render(self._html_env, event_type, EMAIL_HTML, context),
            text_body=self._render(self._text_env, event_type, EMAIL_TEXT, context),
        )

    def _render(
        self,
        env: SandboxedEnvironment,
        event_type: str,
        source: str,
        context: dict[str, Any],
    ) -> str:
        try:
            result = env.from_string(source).render(**context)
        except TemplateError as exc:
            msg = "Failed to render notification template"
            raise TemplateRenderError(msg, {"event_type": event_type, "error": str(exc)}) from exc
        _lazy.debug(lambda: f"templates.render: {event_type} -> {len(result)} chars")
        return result


_renderer: TemplateRenderer | None = None


def get_template_renderer() -> TemplateRenderer:
    """Get the shared TemplateRenderer instance."""
    global _renderer
    if _renderer is None:
        _renderer = TemplateRenderer()
    return _renderer


__all__ = [
    "DEFAULT_TITLE",
    "MESSAGES",
    "TITLES",
    "RenderedEmail",
    "RenderedNotification",
    "TemplateRenderError",
    "TemplateRenderer",
    "get_template_renderer",
]
