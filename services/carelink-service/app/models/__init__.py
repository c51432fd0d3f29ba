from app.models.donation import (  # noqa: F401
    BatchStatus,
    Donation,
    DonationBatch,
    DonationCategory,
    DonationItem,
    DonationStatus,
    Inventory,
)
from app.models.schedule import Appointment, AppointmentStatus, VisitingSchedule  # noqa: F401
