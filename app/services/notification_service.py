import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundOrForbidden
from app.models.expense_report import ExpenseReport, ReportStatus
from app.models.notification import Notification, NotificationType
from app.models.user import User
from app.services import email_service
from app.services.email_service import ReportEmailData
from app.utils.formatting import format_date_for_email, format_money

logger = logging.getLogger(__name__)


def create_notification(
    db: Session,
    user_id,
    type: NotificationType,
    title: str,
    message: str,
    related_report_id=None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        related_report_id=related_report_id,
    )
    db.add(notification)
    return notification


def _status_message(report: ExpenseReport, new_status: ReportStatus):
    """Return (recipient, type, title, message) for a status change, or None."""
    submitter = report.user

    if new_status == ReportStatus.SUBMITTED:
        if submitter is None or submitter.approver is None:
            return None
        return (
            submitter.approver,
            NotificationType.REPORT_SUBMITTED,
            "New Report Submitted",
            f"{submitter.name} has submitted a new expense report: {report.title}",
        )
    if new_status == ReportStatus.APPROVED:
        return (
            submitter,
            NotificationType.REPORT_APPROVED,
            "Report Approved",
            f'Your expense report "{report.title}" has been approved',
        )
    if new_status == ReportStatus.REJECTED:
        message = f'Your expense report "{report.title}" has been rejected'
        if report.rejection_reason:
            message += f": {report.rejection_reason}"
        return (
            submitter,
            NotificationType.REPORT_REJECTED,
            "Report Rejected",
            message,
        )
    if new_status == ReportStatus.REIMBURSED:
        return (
            submitter,
            NotificationType.REPORT_REIMBURSED,
            "Report Reimbursed",
            f'Your expense report "{report.title}" has been reimbursed',
        )
    return None


def send_report_status_notification(
    db: Session, report: ExpenseReport, new_status: ReportStatus
) -> Optional[Notification]:
    """Create and commit the in-app notification for a status change."""
    resolved = _status_message(report, new_status)
    if resolved is None:
        logger.warning(
            "No notification recipient for report %s status %s", report.id, new_status.value
        )
        return None

    recipient, notification_type, title, message = resolved
    notification = create_notification(
        db,
        user_id=recipient.id,
        type=notification_type,
        title=title,
        message=message,
        related_report_id=report.id,
    )
    db.commit()
    logger.info("Notification sent for report %s status change to %s", report.id, new_status.value)
    return notification


def build_report_email_data(report: ExpenseReport) -> ReportEmailData:
    return ReportEmailData(
        report_id=str(report.id),
        report_title=report.title,
        report_amount=format_money(report.total_amount),
        user_name=report.user.name if report.user else "User",
        submission_date=format_date_for_email(report.submitted_at),
        rejection_reason=report.rejection_reason,
        reimbursement_method=report.reimbursement_method,
        reimbursement_date=format_date_for_email(report.reimbursed_at),
        view_url=email_service.report_view_url(report.id),
    )


def send_report_status_email(report: ExpenseReport, new_status: ReportStatus) -> bool:
    data = build_report_email_data(report)
    submitter = report.user

    if new_status == ReportStatus.SUBMITTED:
        approver = submitter.approver if submitter else None
        if approver is None:
            return False
        return email_service.send_report_submitted_email(approver.email, data)
    if submitter is None:
        return False
    if new_status == ReportStatus.APPROVED:
        return email_service.send_report_approved_email(submitter.email, data)
    if new_status == ReportStatus.REJECTED:
        return email_service.send_report_rejected_email(submitter.email, data)
    if new_status == ReportStatus.REIMBURSED:
        return email_service.send_report_reimbursed_email(submitter.email, data)
    return False


def dispatch_status_change(db: Session, report: ExpenseReport, new_status: ReportStatus) -> None:
    """Notify and email after a committed transition.

    Failures are logged and swallowed; the transition stays committed.
    """
    try:
        send_report_status_notification(db, report, new_status)
    except Exception:
        db.rollback()
        logger.exception("Failed to create notification for report %s", report.id)

    try:
        send_report_status_email(report, new_status)
    except Exception:
        logger.exception("Failed to send %s email for report %s", new_status.value, report.id)


def send_system_announcement(
    db: Session, title: str, message: str, role: Optional[str] = None
) -> int:
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    users = query.all()

    if not users:
        logger.warning("System announcement '%s' has no recipients", title)
        return 0

    for user in users:
        create_notification(
            db,
            user_id=user.id,
            type=NotificationType.SYSTEM_ANNOUNCEMENT,
            title=title,
            message=message,
        )
    db.commit()
    logger.info("System announcement sent to %s users", len(users))
    return len(users)


def list_notifications(db: Session, user_id, unread_only: bool = False) -> List[Notification]:
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return query.order_by(Notification.created_at.desc()).all()


def unread_count(db: Session, user_id) -> int:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .count()
    )


def _get_own_notification(db: Session, notification_id, user_id) -> Notification:
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if not notification:
        raise NotFoundOrForbidden("Notification not found")
    return notification


def mark_as_read(db: Session, notification_id, user_id) -> Notification:
    notification = _get_own_notification(db, notification_id, user_id)
    notification.read = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_as_read(db: Session, user_id) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .update({Notification.read: True}, synchronize_session=False)
    )
    db.commit()
    return updated


def delete_notification(db: Session, notification_id, user_id) -> None:
    notification = _get_own_notification(db, notification_id, user_id)
    db.delete(notification)
    db.commit()
