"""
issuebridge - query, classify and transition Azure DevOps and GitLab issues.

Architecture:
- core/: domain types, ports, query building, classification, transitions
- adapters/: Azure DevOps and GitLab clients, configuration providers
- application/: issue, work item and build use cases
- cli/: command line interface
"""

__version__ = "1.0.0"
