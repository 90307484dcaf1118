from enum import Enum


class ApplicationType(str, Enum):
    BUILDING = 'Building'
    OCCUPANCY = 'Occupancy'


class ApplicationStatus(str, Enum):
    SUBMITTED = 'Submitted'
    PENDING_MEO = 'Pending MEO'
    PENDING_BFP = 'Pending BFP'
    PENDING_MAYOR = 'Pending Mayor'
    APPROVED = 'Approved'
    REJECTED = 'Rejected'
    PAYMENT_PENDING = 'Payment Pending'
    PAYMENT_SUBMITTED = 'Payment Submitted'
    PERMIT_ISSUED = 'Permit Issued'

    @classmethod
    def values(cls):
        return [status.value for status in cls]

    @classmethod
    def is_valid(cls, value):
        return value in cls.values()


# Sets below hold plain string values: stored rows and request payloads
# carry strings, and enum members hash by name rather than by value.

# Statuses that move an application forward and are blocked by open flags
PROGRESSION_STATUSES = frozenset({
    ApplicationStatus.PENDING_BFP.value,
    ApplicationStatus.PENDING_MAYOR.value,
    ApplicationStatus.APPROVED.value,
    ApplicationStatus.PERMIT_ISSUED.value,
})

# Entering one of these resets rejection details to the resolved state
CLEARING_STATUSES = frozenset({
    ApplicationStatus.SUBMITTED.value,
    ApplicationStatus.PENDING_MEO.value,
    ApplicationStatus.PAYMENT_PENDING.value,
})

# Statuses in which non-admin requesters may see admin documents
PUBLISHED_STATUSES = frozenset({
    ApplicationStatus.APPROVED.value,
    ApplicationStatus.PERMIT_ISSUED.value,
})


class Role(str, Enum):
    MEO_ADMIN = 'meoadmin'
    BFP_ADMIN = 'bfpadmin'
    MAYOR_ADMIN = 'mayoradmin'
    APPLICANT = 'applicant'


class DocumentRole(str, Enum):
    MEO = 'MEO'
    BFP = 'BFP'
    MAYOR = 'MAYOR'


ADMIN_ROLES = frozenset({
    Role.MEO_ADMIN.value,
    Role.BFP_ADMIN.value,
    Role.MAYOR_ADMIN.value,
})

# Tag stamped on documents uploaded by each admin role
ADMIN_DOCUMENT_ROLES = {
    Role.MEO_ADMIN.value: DocumentRole.MEO.value,
    Role.BFP_ADMIN.value: DocumentRole.BFP.value,
    Role.MAYOR_ADMIN.value: DocumentRole.MAYOR.value,
}


def is_admin_role(role):
    return role in ADMIN_ROLES


class UploadedBy(str, Enum):
    USER = 'user'
    SYSTEM = 'system'
    ADMIN = 'admin'


class PaymentStatus(str, Enum):
    PENDING = 'Pending'
    VERIFIED = 'Verified'
    FAILED = 'Failed'


class PaymentMethod(str, Enum):
    WALK_IN = 'Walk-In'
    ONLINE = 'Online'

    @classmethod
    def values(cls):
        return [method.value for method in cls]
