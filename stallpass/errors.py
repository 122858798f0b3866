"""
Typed failures raised by the token codec and the attendance, feedback and
ranking services. Services raise these and never format responses; the app's
error handler turns them into JSON.
"""


class StallPassError(Exception):
    code = "STALLPASS_ERROR"
    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message=None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        body = {
            "success": False,
            "error_code": self.code,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


# --- Tokens ---------------------------------------------------------------

class TokenError(StallPassError):
    code = "TOKEN_INVALID"
    status_code = 400
    default_message = "Invalid QR code"


class ExpiredToken(TokenError):
    code = "TOKEN_EXPIRED"
    default_message = "QR code has expired, ask the student to refresh it"


class BadSignature(TokenError):
    code = "TOKEN_BAD_SIGNATURE"
    default_message = "QR code signature is invalid"


class MalformedToken(TokenError):
    code = "TOKEN_MALFORMED"
    default_message = "QR code is not a recognised StallPass token"


class FutureWindow(TokenError):
    code = "TOKEN_FUTURE_WINDOW"
    default_message = "QR code was issued for a future time window"


class UnknownToken(TokenError):
    code = "TOKEN_UNKNOWN"
    status_code = 404
    default_message = "QR code does not belong to an active stall"


# --- Attendance -----------------------------------------------------------

class AttendanceError(StallPassError):
    code = "ATTENDANCE_ERROR"


class ParticipantNotFound(AttendanceError):
    code = "PARTICIPANT_NOT_FOUND"
    status_code = 404
    default_message = "Student not found"


class ScanConflict(AttendanceError):
    code = "SCAN_CONFLICT"
    status_code = 409
    default_message = "Student was scanned concurrently by another volunteer"


class ScanTooSoon(AttendanceError):
    code = "SCAN_TOO_SOON"
    status_code = 429
    default_message = "Student was scanned moments ago"


class ActorNotFound(AttendanceError):
    code = "VOLUNTEER_NOT_FOUND"
    status_code = 404
    default_message = "Scanning volunteer not found"


# --- Feedback -------------------------------------------------------------

class FeedbackError(StallPassError):
    code = "FEEDBACK_ERROR"


class AlreadyReviewed(FeedbackError):
    code = "ALREADY_REVIEWED"
    status_code = 409
    default_message = "You have already submitted feedback for this stall"


class QuotaExceeded(FeedbackError):
    code = "FEEDBACK_QUOTA_EXCEEDED"
    status_code = 403
    default_message = "You have reached the maximum feedback limit"


class RatingOutOfRange(FeedbackError):
    code = "RATING_OUT_OF_RANGE"
    default_message = "Rating must be between 1 and 5"


class NotCheckedIn(FeedbackError):
    code = "NOT_CHECKED_IN"
    status_code = 403
    default_message = "You must be checked in at the event"


# --- Ranking --------------------------------------------------------------

class RankingError(StallPassError):
    code = "RANKING_ERROR"


class AlreadySubmitted(RankingError):
    code = "RANKING_ALREADY_SUBMITTED"
    status_code = 409
    default_message = "You have already submitted your rankings. This is ONE-TIME only."


class InvalidRankSet(RankingError):
    code = "INVALID_RANK_SET"
    default_message = "Rankings must be exactly 1, 2 and 3 (no duplicates)"


class DuplicateStall(RankingError):
    code = "DUPLICATE_STALL"
    default_message = "Must rank 3 different stalls"


class CrossSchoolStall(RankingError):
    code = "CROSS_SCHOOL_STALL"
    status_code = 403
    default_message = "You can only rank stalls from your own school"


class StallNotFound(RankingError):
    code = "STALL_NOT_FOUND"
    status_code = 404
    default_message = "Stall not found"


class NotEnoughStalls(RankingError):
    code = "NOT_ENOUGH_STALLS"
    default_message = "Your school needs at least 3 active stalls for ranking"


class RankingNotSubmitted(RankingError):
    code = "RANKING_NOT_SUBMITTED"
    status_code = 404
    default_message = "No rankings submitted yet"
