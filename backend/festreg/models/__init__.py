from festreg.models.registration import Domain, PaymentStatus, Registration, RoomRole

__all__ = ["Domain", "PaymentStatus", "Registration", "RoomRole"]
