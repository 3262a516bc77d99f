"""Channel message templates.

Renders a notification into the email body, the chat Block Kit message and
the realtime event payload. Task notifications (``data["taskId"]``) get a
task details section and an action link to the task; everything else links
to the dashboard.
"""

from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import Any, Dict, List, Optional

from modules.notifications.models import Notification, NotificationPriority, RecipientProfile

TYPE_ICONS = {
    "task_assigned": "📋",
    "task_completed": "✅",
    "task_overdue": "⏰",
    "task_escalated": "🚨",
    "workflow_completed": "🎉",
    "notification_escalation": "🚨",
}
DEFAULT_ICON = "📢"

PRIORITY_COLORS = {
    "low": "#10b981",
    "medium": "#f59e0b",
    "high": "#ef4444",
    "urgent": "#dc2626",
}

PRIORITY_EMOJIS = {
    "low": "🟢",
    "medium": "🟡",
    "high": "🟠",
    "urgent": "🔴",
}


@dataclass
class EmailContent:
    subject: str
    html: str
    text: str


def action_url(notification: Notification, base_url: str) -> str:
    """Link to the related task, or the dashboard."""
    base = base_url.rstrip("/")
    task_id = notification.data.get("taskId")
    if task_id:
        return f"{base}/tasks/{task_id}"
    return f"{base}/dashboard"


def _format_due_date(value: Any) -> Optional[str]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return str(value)


def _task_details(notification: Notification) -> Dict[str, str]:
    """Ordered Project / Priority / Due Date details for task notifications."""
    data = notification.data
    if not data.get("taskId"):
        return {}
    details = {}
    if data.get("projectName"):
        details["Project"] = str(data["projectName"])
    if data.get("priority"):
        details["Priority"] = str(data["priority"])
    due = _format_due_date(data.get("dueDate"))
    if due:
        details["Due Date"] = due
    return details


def render_email(
    notification: Notification, profile: RecipientProfile, base_url: str
) -> EmailContent:
    """Render subject, HTML and plain-text bodies."""
    icon = TYPE_ICONS.get(notification.type.value, DEFAULT_ICON)
    greeting_name = profile.display_name or "there"
    link = action_url(notification, base_url)
    details = _task_details(notification)
    border = PRIORITY_COLORS.get(
        notification.priority.value, PRIORITY_COLORS[NotificationPriority.MEDIUM.value]
    )
    settings_link = f"{base_url.rstrip('/')}/settings/notifications"

    details_html = ""
    if details:
        rows = "".join(
            f'<p style="margin: 5px 0;"><strong>{escape(label)}:</strong> '
            f"{escape(value.upper() if label == 'Priority' else value)}</p>"
            for label, value in details.items()
        )
        details_html = (
            f'<div style="background: white; padding: 20px; border-radius: 8px; '
            f'border-left: 4px solid {border}; margin-bottom: 25px;">'
            f'<h3 style="margin: 0 0 10px 0;">Task Details</h3>{rows}</div>'
        )

    html = (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{escape(notification.title)}</title></head>"
        '<body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f'<h1 style="font-size: 24px;">{icon} {escape(notification.title)}</h1>'
        f"<p>Hi {escape(greeting_name)},</p>"
        f"<p>{escape(notification.message)}</p>"
        f"{details_html}"
        f'<p style="text-align: center;"><a href="{escape(link)}">View Task</a></p>'
        '<hr><p style="font-size: 14px; color: #6c757d;">'
        "This is an automated notification.<br>"
        f'<a href="{escape(settings_link)}">Manage notification preferences</a></p>'
        "</body></html>"
    )

    text_lines = [
        notification.title,
        "",
        f"Hi {greeting_name},",
        "",
        notification.message,
        "",
    ]
    for label, value in details.items():
        text_lines.append(f"{label}: {value.upper() if label == 'Priority' else value}")
    text_lines += [
        "",
        f"View task: {link}",
        "",
        "---",
        "This is an automated notification.",
        f"Manage preferences: {settings_link}",
    ]

    return EmailContent(subject=notification.title, html=html, text="\n".join(text_lines))


def render_chat_message(notification: Notification, base_url: str) -> Dict[str, Any]:
    """Render a Block Kit message: header, body, task fields, action button."""
    icon = TYPE_ICONS.get(notification.type.value, DEFAULT_ICON)
    blocks: List[Dict[str, Any]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": f"{icon} {notification.title}"[:150]},
        },
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": notification.message},
        },
    ]

    details = _task_details(notification)
    if details:
        fields = []
        for label, value in details.items():
            if label == "Priority":
                value = f"{PRIORITY_EMOJIS.get(value.lower(), '')} {value.upper()}".strip()
            fields.append({"type": "mrkdwn", "text": f"*{label}:*\n{value}"})
        blocks.append({"type": "section", "fields": fields})

    blocks.append(
        {
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": "View Task"},
                    "url": action_url(notification, base_url),
                    "style": "primary",
                }
            ],
        }
    )
    return {"text": notification.title, "blocks": blocks}


def realtime_event(notification: Notification) -> Dict[str, Any]:
    """Payload of the ``notification`` realtime event."""
    return {
        "id": notification.id,
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data,
        "priority": notification.priority.value,
        "createdAt": notification.created_at.isoformat(),
        "read": notification.read,
    }
