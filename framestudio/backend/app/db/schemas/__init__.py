from .user import User, UserCreate, UserUpdate
from .class_type import ClassType, ClassTypeCreate, ClassTypeUpdate
from .studio_class import (
    CapacityChange,
    ClassAvailability,
    ClassComplete,
    ClassCreate,
    ClassUpdate,
    CompletionResult,
    FrameAvailability,
    StudioClass,
)
from .reservation import (
    CancellationResult,
    OverrideRequired,
    RescheduleRequest,
    RescheduleResult,
    Reservation,
    ReservationCancel,
    ReservationCreate,
    ReservationCreated,
    ReservationUpdate,
    WaitlistPosition,
)
from .waitlist import WaitlistCreate, WaitlistEntry, WaitlistMove, WaitlistPromote
from .package import (
    CreditSummary,
    Package,
    PackageCreate,
    PackageType,
    PackageTypeCreate,
    PackageTypeUpdate,
    PackageUpdate,
)
from .payment import Payment, PaymentCreate, PaymentStatusUpdate
from .attendance import AttendanceResult, AttendanceUpdate, ClassRoster
from .public import GuestBookingCreate, GuestBookingResult, PublicReservation
