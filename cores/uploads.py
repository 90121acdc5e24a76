# cores/uploads.py
import os
import uuid

from django.core.files.storage import default_storage

UPLOAD_DIR = "candidates"


def store_candidate_file(field_name, uploaded_file):
    """Save an uploaded file and return the URL path stored on the exam record."""
    ext = os.path.splitext(uploaded_file.name or "")[1].lower()
    name = f"{UPLOAD_DIR}/{field_name}-{uuid.uuid4().hex}{ext}"
    saved_name = default_storage.save(name, uploaded_file)
    return default_storage.url(saved_name)
