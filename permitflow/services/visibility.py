from permitflow.models.enums import DocumentRole, PUBLISHED_STATUSES, Role, UploadedBy, is_admin_role

# Admin document tags each reviewing role may see
ADMIN_TAGS_VISIBLE_TO = {
    Role.BFP_ADMIN.value: frozenset({DocumentRole.MEO.value, DocumentRole.BFP.value}),
    Role.MAYOR_ADMIN.value: frozenset({
        DocumentRole.MEO.value, DocumentRole.BFP.value, DocumentRole.MAYOR.value,
    }),
}


def filter_documents_for_requester(documents, requester_role, application_status):
    """Return the subset of documents the requester may see.

    Pure: input documents are not modified, and the result must be derived
    again on every read.

    - Applicants see admin uploads only once the application is Approved or
      Permit Issued.
    - MEO sees everything.
    - BFP sees client/system uploads and admin uploads tagged MEO or BFP.
    - Mayor sees client/system uploads and admin uploads tagged MEO, BFP or MAYOR.
    """
    docs = list(documents or [])

    if not is_admin_role(requester_role):
        if application_status in PUBLISHED_STATUSES:
            return docs
        return [d for d in docs if d.uploaded_by != UploadedBy.ADMIN.value]

    if requester_role == Role.MEO_ADMIN.value:
        return docs

    visible_tags = ADMIN_TAGS_VISIBLE_TO[requester_role]
    return [
        d for d in docs
        if d.uploaded_by in (UploadedBy.USER.value, UploadedBy.SYSTEM.value)
        or (d.uploaded_by == UploadedBy.ADMIN.value and d.uploaded_by_role in visible_tags)
    ]
