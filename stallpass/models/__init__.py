from stallpass.models.school import School
from stallpass.models.student import Student
from stallpass.models.volunteer import Volunteer
from stallpass.models.stall import Stall
from stallpass.models.attendance import CheckInOut
from stallpass.models.feedback import Feedback
from stallpass.models.ranking import Ranking

__all__ = [
    "School",
    "Student",
    "Volunteer",
    "Stall",
    "CheckInOut",
    "Feedback",
    "Ranking",
]
