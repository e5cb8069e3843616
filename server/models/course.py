"""
Course lookup models.

Shapes returned by the course API client, decoupled from the raw JSON the
third-party API sends.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class CourseCandidate:
    """A search hit for a golf course."""
    id: str
    course_name: str
    location: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "course_name": self.course_name,
            "location": self.location,
        }

    @classmethod
    def from_api(cls, d: dict) -> "CourseCandidate":
        location = d.get("location")
        if isinstance(location, dict):
            parts = [location.get(k) for k in ("city", "state", "country")]
            location = ", ".join(p for p in parts if p) or location.get("address")
        return cls(
            id=str(d["id"]),
            course_name=d.get("course_name") or d.get("club_name") or "",
            location=location,
        )


@dataclass
class HolePar:
    """Par for one hole of a course."""
    number: int
    par: int

    def to_dict(self) -> dict:
        return {"number": self.number, "par": self.par}


@dataclass
class CourseDetails:
    """
    Course data chosen from one tee set.

    Attributes:
        id: Course id from the API.
        course_name: Display name.
        par: Total par for the tee set.
        tee_name: Name of the chosen tee set.
        holes: Per-hole par in hole order.
    """
    id: str
    course_name: str
    par: Optional[int] = None
    tee_name: Optional[str] = None
    holes: list[HolePar] = field(default_factory=list)

    @property
    def hole_pars(self) -> list[int]:
        return [hole.par for hole in self.holes]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "course_name": self.course_name,
            "par": self.par,
            "tee_name": self.tee_name,
            "holes": [h.to_dict() for h in self.holes],
        }
