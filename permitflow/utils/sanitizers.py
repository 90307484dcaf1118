import bleach
import re

MAX_COMMENT_LENGTH = 4000
MAX_NAME_LENGTH = 255
MAX_SEARCH_LENGTH = 100


def sanitize_string(text, max_length=MAX_COMMENT_LENGTH):
    """Strip markup and surrounding whitespace from free text (comments, notes)"""
    if text is None:
        return ''

    cleaned = bleach.clean(str(text), tags=[], strip=True).strip()
    return cleaned[:max_length]


def sanitize_requirement_name(name):
    """Requirement and checklist labels: plain text, single spaced"""
    cleaned = sanitize_string(name, max_length=MAX_NAME_LENGTH)
    return re.sub(r'\s+', ' ', cleaned)


def sanitize_names(names):
    """Clean a list of document names, dropping blanks and duplicates"""
    result = []
    for name in names or []:
        cleaned = sanitize_requirement_name(name)
        if cleaned and cleaned not in result:
            result.append(cleaned)
    return result


def sanitize_filename(filename):
    """Reduce an uploaded file name to a safe basename"""
    if not filename:
        return ''

    # Drop any client-side directory part
    filename = re.split(r'[\\/]', filename)[-1]
    filename = re.sub(r'[^a-zA-Z0-9._-]', '_', filename)

    if len(filename) > MAX_NAME_LENGTH:
        stem, dot, ext = filename.rpartition('.')
        if dot and len(ext) < 16:
            filename = stem[:MAX_NAME_LENGTH - len(ext) - 1] + '.' + ext
        else:
            filename = filename[:MAX_NAME_LENGTH]

    return filename


def sanitize_search_query(query):
    """Search terms for reference/permit number lookups; LIKE wildcards removed"""
    if not query:
        return ''

    query = re.sub(r'[;\'"\\%_]', '', query)
    return query[:MAX_SEARCH_LENGTH].strip()
