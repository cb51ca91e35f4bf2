"""StaffMember entity — a person eligible to be assigned tickets."""

from dataclasses import dataclass, field


@dataclass
class StaffMember:
    id: int | None
    shop_id: int
    name: str
    department_id: int | None = None
    skills: set[str] = field(default_factory=set)
    current_load: int = 0
    on_duty: bool = True
    seniority: int = 0

    def has_skill(self, skill: str) -> bool:
        return skill in self.skills

    def has_skills(self, required: set[str] | frozenset[str]) -> bool:
        return set(required).issubset(self.skills)
