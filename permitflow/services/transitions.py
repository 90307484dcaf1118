"""Fixed transition table for the permit workflow.

Each edge maps (from status, to status) to the roles allowed to drive it,
the admin document tag that must exist before it is taken, and the side
effects applied in the same commit.
"""
from collections import namedtuple
from permitflow.models.enums import ADMIN_ROLES, ApplicationStatus as S, DocumentRole, Role

Edge = namedtuple('Edge', ['roles', 'required_doc_role', 'side_effects'])

ANY_STATUS = '*'

# Side effects
VERIFY_PAYMENT = 'verify_payment'
FAIL_PAYMENT = 'fail_payment'
ISSUE_PERMIT = 'issue_permit'

MEO = frozenset({Role.MEO_ADMIN.value})
BFP = frozenset({Role.BFP_ADMIN.value})
MAYOR = frozenset({Role.MAYOR_ADMIN.value})
APPLICANT = frozenset({Role.APPLICANT.value})


def _edge(roles, required_doc_role=None, side_effects=()):
    return Edge(frozenset(roles), required_doc_role, tuple(side_effects))


TRANSITIONS = {
    (S.SUBMITTED.value, S.PENDING_MEO.value): _edge(MEO),

    # Fee assessment and payment sub-path
    (S.PENDING_MEO.value, S.PAYMENT_PENDING.value): _edge(MEO),
    (S.PENDING_MEO.value, S.PAYMENT_SUBMITTED.value): _edge(APPLICANT),
    (S.PAYMENT_PENDING.value, S.PAYMENT_SUBMITTED.value): _edge(APPLICANT),
    (S.PAYMENT_SUBMITTED.value, S.PAYMENT_SUBMITTED.value): _edge(APPLICANT),
    (S.PAYMENT_SUBMITTED.value, S.PAYMENT_PENDING.value): _edge(MEO, side_effects=[FAIL_PAYMENT]),
    (S.PAYMENT_SUBMITTED.value, S.PENDING_BFP.value): _edge(MEO, side_effects=[VERIFY_PAYMENT]),

    # Review loop
    (S.PENDING_MEO.value, S.PENDING_BFP.value): _edge(MEO, DocumentRole.MEO.value),
    (S.PENDING_BFP.value, S.PENDING_MAYOR.value): _edge(BFP, DocumentRole.BFP.value),
    (S.PENDING_BFP.value, S.PENDING_MEO.value): _edge(BFP),
    (S.PENDING_MEO.value, S.PENDING_MAYOR.value): _edge(MEO),
    (S.PENDING_MAYOR.value, S.PENDING_MEO.value): _edge(MAYOR, DocumentRole.MAYOR.value),

    # Final approval and issuance
    (S.PENDING_MEO.value, S.APPROVED.value): _edge(MEO),
    (S.APPROVED.value, S.PERMIT_ISSUED.value): _edge(MEO, side_effects=[ISSUE_PERMIT]),
    (S.PERMIT_ISSUED.value, S.PERMIT_ISSUED.value): _edge(MEO, side_effects=[ISSUE_PERMIT]),

    # Rejection from anywhere, and resubmission
    (ANY_STATUS, S.REJECTED.value): _edge(ADMIN_ROLES),
    (S.REJECTED.value, S.PENDING_MEO.value): _edge(APPLICANT | MEO),
    (S.REJECTED.value, S.PENDING_BFP.value): _edge(APPLICANT | MEO | BFP),
}


def find_edge(from_status, to_status):
    """Return the Edge for a move, or None when the move is not allowed"""
    edge = TRANSITIONS.get((from_status, to_status))
    if edge is None:
        edge = TRANSITIONS.get((ANY_STATUS, to_status))
    return edge
