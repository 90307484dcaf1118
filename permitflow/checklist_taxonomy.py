"""Admin checklist taxonomy.

Ordered categories, each an ordered list of requirement labels. Checklist
items are addressed as ``"<category key>-<item index>"``.
"""

CHECKLIST_CATEGORIES = (
    ('unifiedApplicationForms', '1. Unified Application Forms', (
        '4 notarized copies of the Unified Application Form',
        'Locational Clearance',
        'Fire Safety Evaluation Clearance',
    )),
    ('additionalLocationalClearance', '2. Additional Locational Clearance Requirements', (
        'CAAP Height Clearance (Tall Structures)',
        'Subdivision / HOA / Property Manager Clearance',
        'Initial Environmental Examination (IEE)',
        'Water Management Plan',
        'Historic Site / Facility Statement',
        'Drainage Impact Statement',
        'Socio-Economic Impact Statement',
        'Traffic Impact Assessment',
        'Line and Grade Clearance',
        'Waterways Clearance',
        'Flood Protection Evaluation',
        'Soil Test Report',
    )),
    ('ownershipLandDocuments', '3. Ownership / Land Documents', (
        'Original Certificate of Title / TCT (1 original + 3 photocopies)',
        'Contract of Lease (if applicable)',
        'Deed of Absolute Sale (if applicable)',
    )),
    ('specialDocuments', '4. Special Documents', (
        "Special Power of Attorney (SPA) or Secretary's Certificate",
    )),
    ('buildingSurveyPlans', '5. Building & Survey Plans (Signed & Sealed)', (
        'Architectural Documents',
        'Civil / Structural Documents',
        'Electrical Documents',
        'Mechanical Documents',
        'Sanitary Documents',
        'Plumbing Documents',
        'Electronics Documents',
        'Geodetic Documents',
        'Fire Protection Plan',
    )),
    ('professionalDocuments', '6. Professional Documents', (
        'PRC License (all involved professionals)',
        'PTR Receipts',
    )),
    ('constructionDetails', '7. Construction Details', (
        'Estimated Total Construction Cost Sheet',
        'Construction Safety & Health Program (CSHP)',
        'Construction Logbook',
    )),
    ('others', '8. Others', (
        'Affidavit of Undertaking',
    )),
)


def item_key(category_key, index):
    return f'{category_key}-{index}'


def parse_item_key(key, categories=CHECKLIST_CATEGORIES):
    """Return (category_key, index, label) for a key, or None if unknown"""
    category_key, sep, index = key.rpartition('-')
    if not sep or not index.isdigit():
        return None
    for key_, _title, items in categories:
        if key_ == category_key:
            position = int(index)
            if position < len(items):
                return category_key, position, items[position]
            return None
    return None
