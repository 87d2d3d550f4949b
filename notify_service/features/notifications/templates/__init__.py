"""Notification title, message and email templates."""

from .renderer import (
    DEFAULT_TITLE,
    MESSAGES,
    TITLES,
    RenderedEmail,
    RenderedNotification,
    TemplateRenderError,
    TemplateRenderer,
    get_template_renderer,
)

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
