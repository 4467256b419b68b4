class RehabError(Exception):
    """Base class for every error raised by the monitoring engine."""


class ValidationError(RehabError):
    """A recorded value is out of range or a required id is missing."""


class PersistenceFailure(RehabError):
    """
    The activity log store is unreachable or rejected a write.

    `outcome` carries whatever the caller already decided locally (e.g. the
    pain tier that blocked the session) so it can still be shown to the patient.
    """

    def __init__(self, message: str, outcome=None):
        super().__init__(message)
        self.outcome = outcome


class SessionStateError(RehabError):
    """Operation not allowed in the walk session's current state."""


class PainReportInProgress(SessionStateError):
    """A pain report for this session has not resolved yet."""


class ActiveSessionExists(SessionStateError):
    def __init__(self, patient_id: str, session_id: str):
        super().__init__(f"Patient {patient_id} already has an active session ({session_id}).")
        self.patient_id = patient_id
        self.session_id = session_id


class SessionNotFound(RehabError):
    pass
