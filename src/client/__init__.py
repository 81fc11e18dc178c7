from .field_editor import ExpectedFieldEditor, FieldEditorError, slugify
from .upload_form import SelectedFile, UploadForm

__all__ = ["ExpectedFieldEditor", "FieldEditorError", "SelectedFile", "UploadForm", "slugify"]
