"""Domain models for the decision engine.

Import from the submodules directly (e.g.
`decision_engine.domain.models.instance`); the template module depends on
the selection pipeline service, so this package does not re-export.
"""
