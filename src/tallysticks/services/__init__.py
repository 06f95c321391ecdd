"""Workflow services: the named protocol operations, one service per role."""

from tallysticks.services.admin_service import AdminService
from tallysticks.services.base import ProtocolContext, WorkflowService
from tallysticks.services.borrower_service import BorrowerService
from tallysticks.services.deployment_service import DeploymentService
from tallysticks.services.investor_service import InvestorService
from tallysticks.services.matching_service import MatchingService

__all__ = [
    "AdminService",
    "BorrowerService",
    "DeploymentService",
    "InvestorService",
    "MatchingService",
    "ProtocolContext",
    "WorkflowService",
]
