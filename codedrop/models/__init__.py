from codedrop.models.file_group import FileGroupRecord, StoredFileRecord

__all__ = ["FileGroupRecord", "StoredFileRecord"]
