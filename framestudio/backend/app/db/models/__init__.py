from .user import User, UserRole, UserStatus
from .class_type import ClassType
from .studio_class import StudioClass, ClassStatus
from .reservation import (
    ACTIVE_RESERVATION_STATUSES,
    ATTENDED_STATUSES,
    FrameSize,
    Reservation,
    ReservationStatus,
)
from .waitlist import WaitlistEntry
from .package import Package, PackageStatus, PackageType
from .payment import Payment, PaymentMethod, PaymentStatus
from .audit_log import AuditLog, ActorType
