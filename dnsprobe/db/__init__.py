from dnsprobe.db.models import MatrixRunRecord, RunResultRecord
from dnsprobe.db.repo import Repository

__all__ = [
    "Repository",
    "MatrixRunRecord",
    "RunResultRecord",
]
