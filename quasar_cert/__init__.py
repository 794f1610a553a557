from quasar_cert.models.base import (
    CertificationResult,
    CertificationStatus,
    InvalidCertificationInput,
)
from quasar_cert.models.drs import DRSCertifier

__all__ = [
    "CertificationResult",
    "CertificationStatus",
    "DRSCertifier",
    "InvalidCertificationInput",
]
