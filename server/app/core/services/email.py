"""Email service using MailerSend."""
import html
import logging
from datetime import date
from typing import Optional, Sequence, Union

import httpx

from ...config import get_settings

logger = logging.getLogger(__name__)

_EMAIL_STYLES = """
        body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }
        .container { max-width: 600px; margin: 0 auto; padding: 20px; }
        .header { text-align: center; padding: 20px 0; border-bottom: 2px solid #dc2626; }
        .logo { color: #dc2626; font-size: 22px; font-weight: bold; letter-spacing: 1px; }
        .content { padding: 30px 0; }
        .alert { background: #fef2f2; border: 2px solid #fecaca; border-radius: 8px; padding: 16px; margin: 20px 0; text-align: center; color: #dc2626; font-weight: bold; }
        .card { background: #f8fafc; border-left: 4px solid #3b82f6; border-radius: 4px; padding: 15px; margin: 20px 0; }
        table { width: 100%; border-collapse: collapse; margin: 20px 0; }
        td { padding: 10px; border: 1px solid #e5e7eb; }
        td.label { background: #f8fafc; font-weight: bold; width: 40%; }
        .footer { text-align: center; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #9ca3af; font-size: 12px; }
"""


def _safe(value, default: str = "") -> str:
    """HTML-escape a value for safe embedding in templates."""
    return html.escape(str(value)) if value else default


def _recipient_list(emails: Union[str, Sequence[str], None]) -> list[str]:
    if not emails:
        return []
    if isinstance(emails, str):
        emails = [emails]
    recipients: list[str] = []
    seen: set[str] = set()
    for email in emails:
        normalized = (email or "").strip()
        if not normalized or normalized.lower() in seen:
            continue
        seen.add(normalized.lower())
        recipients.append(normalized)
    return recipients


class EmailService:
    """Service for sending emails via MailerSend API."""

    def __init__(self):
        self.settings = get_settings()
        self.api_key = self.settings.mailersend_api_key
        self.from_email = self.settings.mailersend_from_email
        self.from_name = self.settings.mailersend_from_name
        self.base_url = "https://api.mailersend.com/v1"

    def is_configured(self) -> bool:
        """Check if email service is properly configured."""
        return bool(self.api_key)

    async def send_email(
        self,
        to_email: Union[str, Sequence[str]],
        to_name: Optional[str],
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        cc: Union[str, Sequence[str], None] = None,
    ) -> bool:
        """Send a generic email via MailerSend.

        ``to_email`` and ``cc`` accept a single address or a list. Returns True
        when MailerSend accepted the message, False otherwise; never raises.
        """
        if not self.is_configured():
            logger.warning("[Email] MailerSend not configured, skipping email send")
            return False

        to_recipients = _recipient_list(to_email)
        if not to_recipients:
            logger.warning("[Email] No recipients for '%s', skipping email send", subject)
            return False

        payload = {
            "from": {
                "email": self.from_email,
                "name": self.from_name,
            },
            "to": [
                {
                    "email": email,
                    "name": to_name if (to_name and len(to_recipients) == 1) else email,
                }
                for email in to_recipients
            ],
            "subject": subject,
            "html": html_content,
        }
        cc_recipients = [
            email for email in _recipient_list(cc)
            if email.lower() not in {r.lower() for r in to_recipients}
        ]
        if cc_recipients:
            payload["cc"] = [{"email": email} for email in cc_recipients]
        if text_content:
            payload["text"] = text_content

        recipients_label = ", ".join(to_recipients)
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    f"{self.base_url}/email",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    timeout=30.0,
                )

                if response.status_code in (200, 201, 202):
                    logger.info("[Email] Sent '%s' to %s", subject, recipients_label)
                    return True
                logger.error(
                    "[Email] Failed to send to %s: %s - %s",
                    recipients_label,
                    response.status_code,
                    response.text,
                )
                return False

        except httpx.HTTPError as e:
            logger.error("[Email] Error sending to %s: %s", recipients_label, e)
            return False

    async def send_equipment_return_reminder(
        self,
        to_email: str,
        to_name: str,
        termination_date: date,
        days_since_termination: int,
        cc: Sequence[str] = (),
    ) -> bool:
        """Remind a terminated employee to return company equipment, HR on CC."""
        date_text = termination_date.strftime("%B %d, %Y")
        hr_contact = self.settings.hr_contact_email
        contact_block = ""
        contact_text = ""
        if hr_contact:
            contact_block = f'<div class="card"><strong>HR Contact:</strong><br>{_safe(hr_contact)}</div>'
            contact_text = f"\nHR Contact: {hr_contact}\n"

        html_content = f"""
<!DOCTYPE html>
<html>
<head>
    <style>{_EMAIL_STYLES}</style>
</head>
<body>
    <div class="container">
        <div class="header">
            <div class="logo">Equipment Return Reminder</div>
        </div>
        <div class="content">
            <p>Hello <strong>{_safe(to_name, "there")}</strong>,</p>
            <p>This is a reminder that it has been {days_since_termination} days since your termination date of <strong>{date_text}</strong>.</p>

            <div class="alert">Please return all company equipment immediately</div>

            <p>If you have already returned the equipment, please contact HR to update your records.
            If you have any questions about the return process, please reach out to the HR department.</p>
            {contact_block}
        </div>
        <div class="footer">
            <p>HR Department<br>This is an automated message - please do not reply to this email</p>
        </div>
    </div>
</body>
</html>
"""

        text_content = f"""
Hello {to_name},

This is a reminder that it has been {days_since_termination} days since your termination date of {date_text}.

Please return all company equipment immediately.

If you have already returned the equipment, please contact HR to update your records.
{contact_text}
- HR Department
"""

        return await self.send_email(
            to_email=to_email,
            to_name=to_name,
            subject="Reminder: Return Company Equipment",
            html_content=html_content,
            text_content=text_content,
            cc=list(cc),
        )

    async def send_equipment_overdue_alert(
        self,
        to_emails: Sequence[str],
        employee_name: str,
        employee_email: str,
        termination_date: date,
        overdue_days: int,
    ) -> bool:
        """Alert the HR distribution list that equipment is still outstanding."""
        date_text = termination_date.strftime("%B %d, %Y")
        terminations_url = f"{self.settings.app_base_url}/management-portal/terminations?filter=overdue"

        html_content = f"""
<!DOCTYPE html>
<html>
<head>
    <style>{_EMAIL_STYLES}</style>
</head>
<body>
    <div class="container">
        <div class="header">
            <div class="logo">Equipment Return Alert</div>
        </div>
        <div class="content">
            <p>Dear HR Team,</p>
            <div class="alert">EQUIPMENT NOT RETURNED AFTER {overdue_days} DAYS</div>
            <p>The following terminated employee has not returned company equipment.
            A reminder email has been sent to the employee with this team CC'd.</p>

            <table>
                <tr><td class="label">Employee Name:</td><td>{_safe(employee_name)}</td></tr>
                <tr><td class="label">Email:</td><td>{_safe(employee_email)}</td></tr>
                <tr><td class="label">Termination Date:</td><td>{date_text}</td></tr>
                <tr><td class="label">Days Since Termination:</td><td>{overdue_days}</td></tr>
            </table>

            <p><strong>Action Required:</strong> Please follow up with the employee regarding equipment return.
            This termination has been automatically marked as <strong>OVERDUE</strong>.</p>
            <p><a href="{terminations_url}">Review overdue terminations</a></p>
        </div>
        <div class="footer">
            <p>IT Department - Automated Notification</p>
        </div>
    </div>
</body>
</html>
"""

        text_content = f"""
Dear HR Team,

EQUIPMENT NOT RETURNED AFTER {overdue_days} DAYS

Employee Name: {employee_name}
Email: {employee_email}
Termination Date: {date_text}

Please follow up with the employee regarding equipment return.
This termination has been automatically marked as OVERDUE.

Review overdue terminations: {terminations_url}
"""

        return await self.send_email(
            to_email=list(to_emails),
            to_name="HR Team",
            subject=f"URGENT: Equipment Not Returned - {employee_name}",
            html_content=html_content,
            text_content=text_content,
        )


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get the email service singleton."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
