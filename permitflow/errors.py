"""Business errors raised by the workflow core.

Every error carries the HTTP status the API should answer with and renders
itself as the JSON body. Nothing is written to storage before one of these
is raised.
"""


class WorkflowError(Exception):
    status_code = 400
    message = 'Request could not be processed'

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_dict(self):
        return {'message': self.message, 'error': type(self).__name__}


class InvalidStatus(WorkflowError):
    def __init__(self, status, valid_statuses):
        self.status = status
        self.valid_statuses = list(valid_statuses)
        super().__init__(
            f"Invalid status value: {status}. Valid values are: {', '.join(self.valid_statuses)}"
        )

    def to_dict(self):
        data = super().to_dict()
        data['valid_statuses'] = self.valid_statuses
        return data


class UnresolvedFlags(WorkflowError):
    def __init__(self, target_status, unresolved_flags):
        self.target_status = target_status
        self.unresolved_flags = list(unresolved_flags)
        super().__init__('Cannot proceed to next step: There are unresolved flagged items.')

    def to_dict(self):
        data = super().to_dict()
        data['details'] = (
            f'Please resolve all flagged documents before changing status to "{self.target_status}".'
        )
        data['unresolved_flags'] = self.unresolved_flags
        return data


class MissingRequiredDocuments(WorkflowError):
    def __init__(self, role):
        self.role = role
        super().__init__(
            f'Required admin documents missing for {role}. Upload at least one document before proceeding.'
        )

    def to_dict(self):
        data = super().to_dict()
        data['role'] = self.role
        return data


class InvalidDocument(WorkflowError):
    message = 'Requirement name is required.'


class ValidationError(WorkflowError):
    def __init__(self, details, message='Validation error'):
        # details: list of {'field': ..., 'message': ...}
        self.details = list(details)
        super().__init__(message)

    def to_dict(self):
        data = super().to_dict()
        data['details'] = self.details
        return data


class Forbidden(WorkflowError):
    status_code = 403
    message = 'You are not allowed to perform this action.'


class NotFound(WorkflowError):
    status_code = 404
    message = 'Not found'


class InvalidTransition(WorkflowError):
    status_code = 409

    def __init__(self, from_status, to_status):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f'Cannot move application from "{from_status}" to "{to_status}".')

    def to_dict(self):
        data = super().to_dict()
        data['from_status'] = self.from_status
        data['to_status'] = self.to_status
        return data


class RetryExhausted(WorkflowError):
    status_code = 500

    def __init__(self, attempts):
        self.attempts = attempts
        super().__init__('Failed to save changes after multiple retries')

    def to_dict(self):
        data = super().to_dict()
        data['retries'] = self.attempts
        return data
