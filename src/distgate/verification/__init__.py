"""
distgate — verification layer.

Submodules
- ``checkers``: the stage inspectors and their shared contract.
- ``import_tester``: the isolated pack/install/import state machine.
- ``pipeline``: the stage catalog and ``ValidationOrchestrator``.

Kept free of eager imports; ``distgate.sandbox`` depends on ``checkers.base``.
"""
