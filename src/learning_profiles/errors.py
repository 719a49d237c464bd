"""Exception hierarchy for assessment operations."""


class AssessmentError(Exception):
    """Base exception for assessment failures."""
    pass


class NoAnalyzedEvidenceError(AssessmentError):
    """Raised when a learning profile is requested for a student without analyzed evidence."""

    def __init__(self, student_id: str):
        self.student_id = student_id
        super().__init__(
            f"No evidence available: student {student_id} needs analyzed evidence to generate a learning profile"
        )


class NotFoundError(AssessmentError):
    """Raised when a requested record does not exist."""
    pass


class StudentNotFoundError(NotFoundError):
    """Raised when a student does not exist."""

    def __init__(self, student_id: str):
        self.student_id = student_id
        super().__init__(f"Student {student_id} not found")


class EvidenceNotFoundError(NotFoundError):
    """Raised when an evidence record does not exist."""

    def __init__(self, evidence_id: str):
        self.evidence_id = evidence_id
        super().__init__(f"Evidence {evidence_id} not found")


class EvidenceAlreadyAnalyzedError(AssessmentError):
    """Raised when an analysis is attached to evidence that already has one."""

    def __init__(self, evidence_id: str):
        self.evidence_id = evidence_id
        super().__init__(f"Evidence {evidence_id} has already been analyzed")


class MalformedAssessmentError(AssessmentError):
    """Raised when an external model response cannot be adapted into an analysis result."""
    pass


class DuplicateRecordError(AssessmentError):
    """Raised when a record is created with an id that is already stored."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} already exists")
