# barbershop/engine/errors.py


class BookingError(Exception):
    status_code = 400
    code = "booking_error"

    def __init__(self, message: str = ""):
        self.message = message or (self.__doc__ or "").strip() or self.code
        super().__init__(self.message)


class InvalidScheduleConfig(BookingError):
    """Invalid schedule configuration"""
    status_code = 422
    code = "invalid_schedule_config"


class InvalidBookingRequest(BookingError):
    """Invalid booking request"""
    status_code = 422
    code = "invalid_booking_request"


class NotFound(BookingError):
    """Not found"""
    status_code = 404
    code = "not_found"


class DayClosed(BookingError):
    """The salon is closed that day"""
    status_code = 422
    code = "day_closed"


class SlotNoLongerAvailable(BookingError):
    """That time was just taken, please pick another"""
    status_code = 409
    code = "slot_no_longer_available"


class NoBarberAvailable(BookingError):
    """No barber is free at that time, please pick another"""
    status_code = 409
    code = "no_barber_available"


class InvalidTransition(BookingError):
    """Appointment cannot change to that status"""
    status_code = 409
    code = "invalid_transition"


class InvalidPaymentToken(BookingError):
    """Payment token does not match this booking"""
    status_code = 403
    code = "invalid_payment_token"


class HoldExpired(BookingError):
    """The payment window for this booking has expired, please book again"""
    status_code = 410
    code = "hold_expired"


class StorageUnavailable(BookingError):
    """Storage is unavailable"""
    status_code = 503
    code = "storage_unavailable"
