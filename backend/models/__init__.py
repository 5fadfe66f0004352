from models.parameter import Parameter
from models.routine import Routine, RoutinePeriod
from models.subject import Subject, SubjectTeacher

__all__ = [
	"Parameter",
	"Routine",
	"RoutinePeriod",
	"Subject",
	"SubjectTeacher",
]
