from .subject_list import SubjectListImporter

__all__ = [
    "SubjectListImporter",
]
