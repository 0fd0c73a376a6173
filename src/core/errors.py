"""Typed failures raised by the ranking engine.

Callers route on the type: a missing candidate is a client problem, an
unavailable dependency is an infrastructure problem worth retrying.
"""


class EngineError(Exception):
    """Base class for every error raised by the engine."""


class DependencyUnavailableError(EngineError):
    """A collaborator (profile reader, corpus or state store) could not be reached.

    The engine never falls back to degraded scoring when the underlying data
    itself is unavailable.
    """

    def __init__(self, dependency: str, detail: str = "") -> None:
        self.dependency = dependency
        self.detail = detail
        msg = f"{dependency} unavailable"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class CandidateNotFoundError(EngineError, LookupError):
    """No candidate record exists for the requested id."""

    def __init__(self, candidate_id: str) -> None:
        self.candidate_id = candidate_id
        super().__init__(f"Candidate not found: {candidate_id}")


class OpportunityNotFoundError(EngineError, LookupError):
    """No listing exists for the requested id."""

    def __init__(self, opportunity_id: str) -> None:
        self.opportunity_id = opportunity_id
        super().__init__(f"Opportunity not found: {opportunity_id}")
