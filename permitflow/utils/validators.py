from decimal import Decimal, InvalidOperation
from permitflow.errors import ValidationError
from permitflow.models.enums import PaymentMethod
from permitflow.utils.sanitizers import sanitize_filename, sanitize_names, sanitize_string

BUILDING_REQUIRED_SECTIONS = ('box1', 'box2', 'box3', 'box4')
OCCUPANCY_REQUIRED_FIELDS = ('building_permit_identifier', 'permit_info', 'project_details', 'signatures')


def _missing(data, fields):
    return [
        {'field': field, 'message': 'This field is required.'}
        for field in fields
        if not data.get(field)
    ]


def validate_building_submission(data):
    """Building forms must carry box1 to box4 as objects"""
    details = _missing(data, BUILDING_REQUIRED_SECTIONS)
    for field in BUILDING_REQUIRED_SECTIONS:
        if data.get(field) and not isinstance(data[field], dict):
            details.append({'field': field, 'message': 'Must be an object.'})
    if details:
        raise ValidationError(details, message='Missing required form sections')
    return {field: data[field] for field in BUILDING_REQUIRED_SECTIONS}


def validate_occupancy_submission(data):
    details = _missing(data, OCCUPANCY_REQUIRED_FIELDS)
    if details:
        raise ValidationError(details, message='Missing required form fields')
    return data


def validate_status_update(data):
    """Shape check for a status update body; returns cleaned values"""
    if not isinstance(data, dict):
        raise ValidationError([{'field': 'body', 'message': 'JSON object expected.'}])

    details = []
    status = data.get('status')
    if not status or not isinstance(status, str):
        details.append({'field': 'status', 'message': 'This field is required.'})

    missing_documents = data.get('missing_documents')
    if missing_documents is not None and (
        not isinstance(missing_documents, list)
        or not all(isinstance(name, str) for name in missing_documents)
    ):
        details.append({'field': 'missing_documents', 'message': 'Must be a list of document names.'})

    rejection_details = data.get('rejection_details')
    if rejection_details is not None:
        details.extend(_rejection_details_errors(rejection_details))

    if details:
        raise ValidationError(details)

    comments = data.get('comments')
    return {
        'status': status.strip(),
        'comments': sanitize_string(comments) if comments else None,
        'missing_documents': sanitize_names(missing_documents) if missing_documents else None,
        'rejection_details': clean_rejection_details(rejection_details) if rejection_details is not None else None,
    }


def _rejection_details_errors(value):
    if not isinstance(value, dict):
        return [{'field': 'rejection_details', 'message': 'Must be an object.'}]
    details = []
    missing = value.get('missing_documents', [])
    if not isinstance(missing, list):
        details.append({'field': 'rejection_details.missing_documents', 'message': 'Must be a list.'})
    if 'is_resolved' in value and not isinstance(value['is_resolved'], bool):
        details.append({'field': 'rejection_details.is_resolved', 'message': 'Must be a boolean.'})
    return details


def clean_rejection_details(value):
    missing = sanitize_names(value.get('missing_documents', []))
    return {
        'comments': sanitize_string(value.get('comments') or ''),
        'missing_documents': missing,
        'is_resolved': value.get('is_resolved', not missing),
    }


def validate_item_keys(data):
    item_keys = data.get('item_keys') if isinstance(data, dict) else None
    if not item_keys or not isinstance(item_keys, list) or not all(isinstance(k, str) for k in item_keys):
        raise ValidationError(
            [{'field': 'item_keys', 'message': 'Select at least one checklist item.'}]
        )
    return item_keys


def validate_payment_submission(form, proof_file):
    details = []
    method = form.get('method')
    if method not in PaymentMethod.values():
        details.append({
            'field': 'method',
            'message': f"Must be one of: {', '.join(PaymentMethod.values())}."
        })
    elif method == PaymentMethod.ONLINE.value and not proof_file:
        details.append({
            'field': 'proof',
            'message': 'Proof of payment image is required for online transactions.'
        })

    amount_paid = form.get('amount_paid')
    if amount_paid not in (None, ''):
        try:
            amount_paid = Decimal(str(amount_paid))
            if amount_paid <= 0:
                raise InvalidOperation
        except InvalidOperation:
            details.append({'field': 'amount_paid', 'message': 'Must be a positive amount.'})
    else:
        amount_paid = None

    if details:
        raise ValidationError(details)

    reference_number = form.get('reference_number')
    return {
        'method': method,
        'reference_number': sanitize_string(reference_number) if reference_number else None,
        'amount_paid': amount_paid,
    }


def read_upload(file_storage, field='file'):
    """Turn an uploaded FileStorage into the blob dict the ledgers expect"""
    if file_storage is None or not file_storage.filename:
        raise ValidationError([{'field': field, 'message': 'No file uploaded.'}])

    content = file_storage.read()
    if not content:
        raise ValidationError([{'field': field, 'message': 'Uploaded file is empty.'}])

    return {
        'file_name': sanitize_filename(file_storage.filename) or 'document',
        'mime_type': file_storage.mimetype or 'application/octet-stream',
        'size': len(content),
        'content': content,
    }
