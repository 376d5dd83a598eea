"""
Vehicle workflow orchestration

Location registry, step derivation, transition validation, move execution,
audit trail and next-action recommendation. Import concrete classes from
their modules; WorkflowOrchestrator is the facade collaborators use.
"""
