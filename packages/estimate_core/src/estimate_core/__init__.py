"""
Estimate Core - multi-tenant authorization and handoff workflow.

This package provides:
- Identity contracts (roles, company claims)
- Credential verification and session authority
- Capability authorization (named actions evaluated against a context)
- Tenant-scoped persistence for companies, contractors and estimates
- Handoff state machine and pricing override store
- Services implementing each contractor/homeowner operation

It has no dependency on the web layer; apps import it, never the reverse.
"""
