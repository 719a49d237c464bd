"""
Repository interface for assessment records, with an in-memory implementation.

The repository owns the two storage-level guarantees the assessment flow relies on:
- attach_analysis latches Evidence.is_analyzed from False to True exactly once
- save_learning_profile keeps at most one profile per student (insert or update)
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from ..errors import DuplicateRecordError, EvidenceAlreadyAnalyzedError, EvidenceNotFoundError, StudentNotFoundError
from ..models import AnalysisResult, AnalyzedEvidence, Evidence, LearningProfile, Student, TeacherPerspective
from ..models.database import utc_now


logger = logging.getLogger(__name__)

# Student fields callers may change through update_student
STUDENT_UPDATABLE_FIELDS = frozenset({"name", "age", "grade", "main_subjects", "special_needs", "teacher_id"})


class AssessmentRepository(ABC):
    """Abstract storage for students, perspectives, evidence, analyses and profiles."""

    async def initialize(self) -> None:
        """Prepare the backing store. No-op unless overridden."""
        return None

    async def close(self) -> None:
        """Release backing resources. No-op unless overridden."""
        return None

    # Students

    @abstractmethod
    async def create_student(self, student: Student) -> Student:
        """Store a new student. Raises DuplicateRecordError if the id is taken."""
        pass

    @abstractmethod
    async def get_student(self, student_id: str) -> Optional[Student]:
        pass

    @abstractmethod
    async def list_students(self, teacher_id: Optional[str] = None) -> List[Student]:
        """List students, optionally only those owned by teacher_id, oldest first."""
        pass

    @abstractmethod
    async def update_student(self, student_id: str, changes: Dict[str, Any]) -> Student:
        """Apply changes to a student. Raises StudentNotFoundError."""
        pass

    @abstractmethod
    async def delete_student(self, student_id: str) -> bool:
        """Delete a student with everything it owns. Returns True if it existed."""
        pass

    # Teacher perspectives

    @abstractmethod
    async def save_perspective(self, perspective: TeacherPerspective) -> TeacherPerspective:
        """Create the student's perspective, or replace the existing one keeping its id."""
        pass

    @abstractmethod
    async def get_perspective(self, student_id: str) -> Optional[TeacherPerspective]:
        pass

    @abstractmethod
    async def list_perspectives(self, student_ids: Optional[Iterable[str]] = None) -> List[TeacherPerspective]:
        pass

    # Evidence and analyses

    @abstractmethod
    async def add_evidence(self, evidence: Evidence) -> Evidence:
        """Store new, unanalyzed evidence. Raises DuplicateRecordError if the id is taken."""
        pass

    @abstractmethod
    async def get_evidence(self, evidence_id: str) -> Optional[Evidence]:
        pass

    @abstractmethod
    async def list_evidence(self, student_id: Optional[str] = None) -> List[Evidence]:
        """List evidence, optionally for one student, newest first."""
        pass

    @abstractmethod
    async def attach_analysis(self, result: AnalysisResult) -> Evidence:
        """
        Store an analysis result and mark its evidence analyzed.

        Raises:
            EvidenceNotFoundError: If the evidence does not exist
            EvidenceAlreadyAnalyzedError: If the evidence already has an analysis
        """
        pass

    @abstractmethod
    async def get_analysis(self, evidence_id: str) -> Optional[AnalysisResult]:
        pass

    @abstractmethod
    async def list_analyzed(self, student_id: str) -> List[AnalyzedEvidence]:
        """Analyzed evidence of a student paired with its results, oldest first."""
        pass

    # Learning profiles

    @abstractmethod
    async def save_learning_profile(self, profile: LearningProfile) -> LearningProfile:
        """Insert the student's profile, or update the existing one in place."""
        pass

    @abstractmethod
    async def get_learning_profile(self, student_id: str) -> Optional[LearningProfile]:
        pass

    @abstractmethod
    async def count_learning_profiles(self, student_ids: Optional[Iterable[str]] = None) -> int:
        pass


class InMemoryRepository(AssessmentRepository):
    """
    Dictionary-backed repository.

    All operations run under one asyncio.Lock so the analyzed latch and the
    profile upsert are atomic with respect to concurrent tasks. Records are
    copied in and out so callers cannot mutate stored state.
    """

    def __init__(self):
        self._students: Dict[str, Student] = {}
        self._perspectives: Dict[str, TeacherPerspective] = {}  # by student_id
        self._evidence: Dict[str, Evidence] = {}
        self._analyses: Dict[str, AnalysisResult] = {}  # by evidence_id
        self._profiles: Dict[str, LearningProfile] = {}  # by student_id
        self._lock = asyncio.Lock()

    async def create_student(self, student: Student) -> Student:
        async with self._lock:
            if student.id in self._students:
                raise DuplicateRecordError("Student", student.id)
            self._students[student.id] = student.model_copy(deep=True)
            return student.model_copy(deep=True)

    async def get_student(self, student_id: str) -> Optional[Student]:
        async with self._lock:
            student = self._students.get(student_id)
            return student.model_copy(deep=True) if student else None

    async def list_students(self, teacher_id: Optional[str] = None) -> List[Student]:
        async with self._lock:
            students = [
                s for s in self._students.values()
                if teacher_id is None or s.teacher_id == teacher_id
            ]
            students.sort(key=lambda s: s.created_at)
            return [s.model_copy(deep=True) for s in students]

    async def update_student(self, student_id: str, changes: Dict[str, Any]) -> Student:
        async with self._lock:
            current = self._students.get(student_id)
            if current is None:
                raise StudentNotFoundError(student_id)

            data = current.model_dump()
            data.update({k: v for k, v in changes.items() if k in STUDENT_UPDATABLE_FIELDS})
            data["updated_at"] = utc_now()
            updated = Student.model_validate(data)
            self._students[student_id] = updated
            return updated.model_copy(deep=True)

    async def delete_student(self, student_id: str) -> bool:
        async with self._lock:
            if self._students.pop(student_id, None) is None:
                return False

            owned = [eid for eid, e in self._evidence.items() if e.student_id == student_id]
            for evidence_id in owned:
                self._evidence.pop(evidence_id, None)
                self._analyses.pop(evidence_id, None)
            self._perspectives.pop(student_id, None)
            self._profiles.pop(student_id, None)

            logger.info(f"Deleted student {student_id}", extra={"evidence_removed": len(owned)})
            return True

    async def save_perspective(self, perspective: TeacherPerspective) -> TeacherPerspective:
        async with self._lock:
            existing = self._perspectives.get(perspective.student_id)
            stored = perspective.model_copy(deep=True)
            if existing is not None:
                stored = stored.model_copy(update={"id": existing.id})
            self._perspectives[perspective.student_id] = stored
            return stored.model_copy(deep=True)

    async def get_perspective(self, student_id: str) -> Optional[TeacherPerspective]:
        async with self._lock:
            perspective = self._perspectives.get(student_id)
            return perspective.model_copy(deep=True) if perspective else None

    async def list_perspectives(self, student_ids: Optional[Iterable[str]] = None) -> List[TeacherPerspective]:
        async with self._lock:
            wanted = set(student_ids) if student_ids is not None else None
            return [
                p.model_copy(deep=True) for sid, p in self._perspectives.items()
                if wanted is None or sid in wanted
            ]

    async def add_evidence(self, evidence: Evidence) -> Evidence:
        async with self._lock:
            if evidence.id in self._evidence:
                raise DuplicateRecordError("Evidence", evidence.id)
            stored = evidence.model_copy(update={"is_analyzed": False}, deep=True)
            self._evidence[evidence.id] = stored
            return stored.model_copy(deep=True)

    async def get_evidence(self, evidence_id: str) -> Optional[Evidence]:
        async with self._lock:
            evidence = self._evidence.get(evidence_id)
            return evidence.model_copy(deep=True) if evidence else None

    async def list_evidence(self, student_id: Optional[str] = None) -> List[Evidence]:
        async with self._lock:
            items = [
                e for e in self._evidence.values()
                if student_id is None or e.student_id == student_id
            ]
            items.sort(key=lambda e: e.created_at, reverse=True)
            return [e.model_copy(deep=True) for e in items]

    async def attach_analysis(self, result: AnalysisResult) -> Evidence:
        async with self._lock:
            evidence = self._evidence.get(result.evidence_id)
            if evidence is None:
                raise EvidenceNotFoundError(result.evidence_id)
            if evidence.is_analyzed:
                raise EvidenceAlreadyAnalyzedError(result.evidence_id)

            self._analyses[result.evidence_id] = result
            analyzed = evidence.model_copy(update={"is_analyzed": True})
            self._evidence[result.evidence_id] = analyzed
            return analyzed.model_copy(deep=True)

    async def get_analysis(self, evidence_id: str) -> Optional[AnalysisResult]:
        async with self._lock:
            return self._analyses.get(evidence_id)

    async def list_analyzed(self, student_id: str) -> List[AnalyzedEvidence]:
        async with self._lock:
            pairs = [
                AnalyzedEvidence(evidence=e.model_copy(deep=True), analysis=self._analyses[e.id])
                for e in self._evidence.values()
                if e.student_id == student_id and e.is_analyzed and e.id in self._analyses
            ]
            pairs.sort(key=lambda p: p.evidence.created_at)
            return pairs

    async def save_learning_profile(self, profile: LearningProfile) -> LearningProfile:
        async with self._lock:
            existing = self._profiles.get(profile.student_id)
            stored = profile.model_copy(deep=True)
            if existing is not None:
                stored = stored.model_copy(update={"id": existing.id, "updated_at": utc_now()})
            self._profiles[profile.student_id] = stored
            return stored.model_copy(deep=True)

    async def get_learning_profile(self, student_id: str) -> Optional[LearningProfile]:
        async with self._lock:
            profile = self._profiles.get(student_id)
            return profile.model_copy(deep=True) if profile else None

    async def count_learning_profiles(self, student_ids: Optional[Iterable[str]] = None) -> int:
        async with self._lock:
            if student_ids is None:
                return len(self._profiles)
            wanted = set(student_ids)
            return sum(1 for sid in self._profiles if sid in wanted)
