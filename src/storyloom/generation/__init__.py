"""Generation module: one storyboard unit per call.

- cardinality: exact-N structured scenes with corrective retries
- compliance/template: detailed template validation, repair and one regeneration
- Forbidden: batching, persistence, HTTP concerns
"""
