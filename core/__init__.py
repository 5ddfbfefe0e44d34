"""
CeyLog Core Module

This module contains the service logic behind the CeyLog API:
- Report delivery: origin/size gates, sensitive-data scan, export, email, audit
- Report exporters for PDF, CSV and DOCX
- AI trade reports (market analysis, buyer matches, marketing copy)
- Firestore-backed stores, the per-actor rate gate and Stripe billing helpers

Route handlers in ``api.routes`` stay thin; everything they call lives here and
receives its collaborators explicitly through ``core.services``.

Example usage:
    from core.exporters import export_report
    from core.delivery import ReportDeliveryService
    from core.services import build_services
"""

__version__ = "0.1.0"
__all__ = [
    "ai",
    "audit",
    "delivery",
    "email",
    "exporters",
    "services",
]
