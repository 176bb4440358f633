# app/services/email_service.py

import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class ReportEmailData:
    report_id: str
    report_title: str
    report_amount: str
    user_name: str
    submission_date: str = "N/A"
    rejection_reason: Optional[str] = None
    reimbursement_method: Optional[str] = None
    reimbursement_date: Optional[str] = None
    view_url: Optional[str] = None


def report_view_url(report_id) -> str:
    return f"{settings.FRONTEND_BASE_URL}/reports/{report_id}"


def _render(heading: str, color: str, greeting_name: str, intro: str, rows, data: ReportEmailData) -> str:
    info = "".join(
        f"<p><strong>{escape(label)}:</strong> {escape(str(value))}</p>"
        for label, value in rows
        if value
    )
    button = ""
    if data.view_url:
        button = f"""
        <p>
          <a href="{escape(data.view_url)}"
             style="
               display:inline-block;
               padding:10px 16px;
               background:{color};
               color:#ffffff;
               text-decoration:none;
               border-radius:4px;
             ">
            View report details
          </a>
        </p>
        """

    return f"""
    <html>
      <body style="font-family: Arial, sans-serif;">
        <h2 style="color:{color};">{escape(heading)}</h2>
        <p>Hello {escape(greeting_name)},</p>
        <p>{intro}</p>
        <div style="background:#f9f9f9;border-left:4px solid {color};padding:12px;">
          {info}
        </div>
        {button}
        <p style="font-size:12px;color:#666;">
          This is an automated message from the expense report system.
        </p>
      </body>
    </html>
    """


def send_email(to_email: str, subject: str, html_body: str) -> bool:
    if not settings.SEND_EMAILS or not settings.SMTP_HOST:
        logger.info("Email sending disabled, skipping '%s' to %s", subject, to_email)
        return False

    msg = MIMEMultipart("alternative")
    msg["From"] = settings.SMTP_FROM
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.attach(MIMEText(html_body, "html"))

    # Relay mode; authenticate only when credentials are configured
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as server:
        if settings.SMTP_USER and settings.SMTP_PASSWORD:
            server.starttls()
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.sendmail(
            settings.SMTP_FROM,
            [to_email],
            msg.as_string(),
        )

    logger.info("Email sent to=%s subject=%s", to_email, subject)
    return True


def send_report_submitted_email(to_email: str, data: ReportEmailData) -> bool:
    html_body = _render(
        "Expense report pending approval",
        "#2563eb",
        "there",
        f"<strong>{escape(data.user_name)}</strong> submitted the expense report "
        f"<strong>{escape(data.report_title)}</strong> and it is waiting for your approval.",
        [
            ("Report ID", data.report_id),
            ("Amount", data.report_amount),
            ("Submitted", data.submission_date),
        ],
        data,
    )
    return send_email(to_email, "Expense report pending approval", html_body)


def send_report_approved_email(to_email: str, data: ReportEmailData) -> bool:
    html_body = _render(
        "Expense report approved",
        "#4CAF50",
        data.user_name,
        f"Your expense report <strong>{escape(data.report_title)}</strong> has been approved. "
        "It will be processed for reimbursement soon.",
        [
            ("Report ID", data.report_id),
            ("Amount", data.report_amount),
            ("Submitted", data.submission_date),
        ],
        data,
    )
    return send_email(to_email, "Your expense report has been approved", html_body)


def send_report_rejected_email(to_email: str, data: ReportEmailData) -> bool:
    html_body = _render(
        "Expense report rejected",
        "#F44336",
        data.user_name,
        f"Your expense report <strong>{escape(data.report_title)}</strong> has been rejected.",
        [
            ("Report ID", data.report_id),
            ("Amount", data.report_amount),
            ("Submitted", data.submission_date),
            ("Reason", data.rejection_reason),
        ],
        data,
    )
    return send_email(to_email, "Your expense report has been rejected", html_body)


def send_report_reimbursed_email(to_email: str, data: ReportEmailData) -> bool:
    html_body = _render(
        "Expense report reimbursed",
        "#2196F3",
        data.user_name,
        f"Your expense report <strong>{escape(data.report_title)}</strong> has been reimbursed.",
        [
            ("Report ID", data.report_id),
            ("Amount", data.report_amount),
            ("Method", data.reimbursement_method),
            ("Reimbursed", data.reimbursement_date),
        ],
        data,
    )
    return send_email(to_email, "Your expense report has been reimbursed", html_body)
