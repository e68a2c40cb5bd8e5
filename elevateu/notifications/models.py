from enum import Enum


class NotificationType(str, Enum):
    PUBLISH_REQUEST = "publish_request"
    VERIFY_PROFILE = "verify_profile"
    NEW_ENROLLMENT = "new_enrollment"
    PAYMENT_UPDATE = "payment_update"
    COURSE_APPROVED = "course_approved"
    COURSE_REJECTED = "course_rejected"
    WITHDRAW_REQUEST = "withdraw_request"
    WITHDRAW_APPROVED = "withdraw_approved"
    WITHDRAW_REJECTED = "withdraw_rejected"
    COURSE_COMPLETED = "course_completed"
    PROFILE_APPROVED = "profile_approved"
    PROFILE_REJECTED = "profile_rejected"
