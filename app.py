#!/usr/bin/env python3
"""
PermitFlow Backend Application Runner
"""
import os
from permitflow import create_app, db
from permitflow.models import Application, AuditLog, Document, Payment, WorkflowHistoryEntry
from permitflow.services.application_store import ApplicationStore
from permitflow.services.checklist_tracker import ChecklistTracker
from permitflow.services.workflow_engine import WorkflowEngine

app = create_app()

@app.shell_context_processor
def make_shell_context():
    # Services come pre-bound to the shell's session
    store = ApplicationStore(db.session)
    return {
        'db': db,
        'Application': Application,
        'WorkflowHistoryEntry': WorkflowHistoryEntry,
        'Document': Document,
        'Payment': Payment,
        'AuditLog': AuditLog,
        'ApplicationStore': ApplicationStore,
        'WorkflowEngine': WorkflowEngine,
        'ChecklistTracker': ChecklistTracker,
        'store': store,
        'engine': store.engine,
        'checklist': ChecklistTracker(db.session)
    }

if __name__ == '__main__':
    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('FLASK_ENV') == 'development'
    app.run(host='0.0.0.0', port=port, debug=debug)
