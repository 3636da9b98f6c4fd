# PDF module
from esign_bridge.pdf.agreement import AgreementPdfGenerator, get_agreement_generator
from esign_bridge.pdf.merge import PdfMergeClient

__all__ = [
    "AgreementPdfGenerator",
    "get_agreement_generator",
    "PdfMergeClient",
]
