"""Common application-wide constants."""

# Audit log actions
CREDIT_DEDUCTED = "credit_deducted"
CREDIT_RESTORED = "credit_restored"
PACKAGE_STATUS_UPDATED = "package_status_updated"
RESERVATION_CANCELLED = "reservation_cancelled"
RESERVATION_DELETED = "reservation_deleted"
WAITLIST_PROMOTED = "waitlist_promoted"
CLASS_CANCELLED = "class_cancelled"
CAPACITY_CHANGED = "class_capacity_changed"
CLASS_COMPLETED = "class_completed"
RESERVATION_RESCHEDULED = "reservation_rescheduled"
USER_ACTIVATED = "user_activated"

# Reasons recorded with credit movements and cancellations
RESERVATION_CREATED_REASON = "reservation_created"
RESERVATION_CANCELLED_REASON = "reservation_cancelled"
RESERVATION_DELETED_REASON = "reservation_deleted"
RESERVATION_UPDATED_REASON = "reservation_updated"
WAITLIST_PROMOTION_REASON = "waitlist_promotion"
ATTENDANCE_REASON = "attendance_update"
CLASS_CANCELLED_REASON = "class_cancelled"
PAYMENT_COMPLETED_REASON = "payment_completed"
RESCHEDULED_REASON = "rescheduled"

GUEST_PACKAGE_NAME = "Single class"


__all__ = [
    "CREDIT_DEDUCTED",
    "CREDIT_RESTORED",
    "PACKAGE_STATUS_UPDATED",
    "RESERVATION_CANCELLED",
    "RESERVATION_DELETED",
    "WAITLIST_PROMOTED",
    "CLASS_CANCELLED",
    "CAPACITY_CHANGED",
    "CLASS_COMPLETED",
    "RESERVATION_RESCHEDULED",
    "USER_ACTIVATED",
    "RESERVATION_CREATED_REASON",
    "RESERVATION_CANCELLED_REASON",
    "RESERVATION_DELETED_REASON",
    "RESERVATION_UPDATED_REASON",
    "WAITLIST_PROMOTION_REASON",
    "ATTENDANCE_REASON",
    "CLASS_CANCELLED_REASON",
    "PAYMENT_COMPLETED_REASON",
    "RESCHEDULED_REASON",
    "GUEST_PACKAGE_NAME",
]
